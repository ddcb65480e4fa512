from pydantic import BaseModel


class PreviewFrame(BaseModel):
    """Server -> Client: live camera frame, or the frozen still after capture."""
    type: str = "preview"
    jpgBase64: str
    width: int
    height: int
    ts: float


class PreviewStatus(BaseModel):
    """Server -> Client: no image to show (camera idle or starting)."""
    type: str = "status"
    state: str
    ts: float
