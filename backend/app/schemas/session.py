from enum import Enum

from pydantic import BaseModel

from services.notifier import Notice


class SessionState(str, Enum):
    IDLE = "idle"
    STARTING = "starting"
    READY = "ready"
    FROZEN = "frozen"


class ModelStatus(str, Enum):
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


class Actions(BaseModel):
    """Which of the three UI actions are currently enabled."""
    start: bool
    capture: bool
    reset: bool


class SlicePrediction(BaseModel):
    """Classification of one letter slice, left to right."""
    index: int
    character: str
    confidence: float


class CaptureRequest(BaseModel):
    """Input to /session/capture; the raw value of the letter-count field."""
    letter_count: str | int | None = None


class SessionView(BaseModel):
    """Everything the client needs to render the page."""
    state: SessionState
    model: ModelStatus
    instructions: str
    output: str
    actions: Actions
    word: str | None = None
    predictions: list[SlicePrediction] = []
    still_visible: bool = False
    notices: list[Notice] = []
