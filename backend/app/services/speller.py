"""Capture, classify and assemble: the pop-it speller session controller."""

import asyncio
import logging
import re
from collections.abc import Callable
from dataclasses import dataclass

import numpy as np

from schemas.session import Actions, ModelStatus, SessionState, SessionView, SlicePrediction
from services.camera import CameraSession
from services.classifier import UNKNOWN, LetterClassifier, load_classifier
from services.errors import (
    ActionUnavailable,
    CameraError,
    CameraNotReady,
    ClassificationError,
    InvalidLetterCount,
    ModelLoadError,
    ModelNotReady,
)
from services.notifier import Notifier, NoticeKind
from services.segmentation import slice_frame

logger = logging.getLogger(__name__)

WELCOME = "Presiona Activar cámara para comenzar."
WAITING = "Esperando..."
REQUESTING_CAMERA = "Solicitando acceso a la cámara..."
CAMERA_READY = "Cámara activada. Coloca el pop-it y presiona Capturar palabra."
RESTARTING_CAMERA = "Reiniciando cámara..."
CAPTURE_AGAIN = "Puedes capturar otra palabra."
NO_ARRANGEMENT = "No se detectó un pop-it válido."
NO_ARRANGEMENT_SPEECH = "No se detectó un pop-it válido. Intenta de nuevo."
CLASSIFY_FAILED = "No se pudo reconocer la palabra."
CLASSIFY_FAILED_SPEECH = "No se pudo reconocer la palabra. Reinicia e intenta de nuevo."

_LEADING_INT_RE = re.compile(r"\s*([+-]?[0-9]+)")


def parse_letter_count(raw: str | int | None) -> int:
    """Read the letter-count field the way a browser's parseInt does.

    Leading whitespace and digits are honoured ("5 letras" -> 5); anything
    without a leading integer, or an integer below 1, is rejected.
    """
    if isinstance(raw, bool):
        raise InvalidLetterCount()
    if isinstance(raw, int):
        value = raw
    else:
        match = _LEADING_INT_RE.match(raw or "")
        if match is None:
            raise InvalidLetterCount()
        value = int(match.group(1))
    if value < 1:
        raise InvalidLetterCount()
    return value


@dataclass(frozen=True)
class Assembly:
    word: str
    all_unknown: bool
    output_text: str
    speech: str


def assemble(characters: list[str]) -> Assembly:
    """Join per-slice characters (in slice order) into the reported word."""
    word = "".join(characters)
    if all(c == UNKNOWN for c in characters):
        return Assembly(word, True, NO_ARRANGEMENT, NO_ARRANGEMENT_SPEECH)
    return Assembly(word, False, f"Palabra detectada: {word}", f"La palabra es {word}")


class SpellerSession:
    """Session context: camera, classifier, UI text and action gating.

    States move idle -> ready (start) -> frozen (capture) -> ready (reset).
    A failed camera start leaves the session idle. Actions are serialised
    with an asyncio lock so at most one of them runs at a time.
    """

    def __init__(
        self,
        camera: CameraSession | None = None,
        notifier: Notifier | None = None,
        classifier: LetterClassifier | None = None,
    ):
        self.camera = camera or CameraSession()
        self.notifier = notifier or Notifier()
        self.classifier = classifier
        self.model_status = ModelStatus.READY if classifier is not None else ModelStatus.LOADING
        self.state = SessionState.IDLE
        self.instructions = WELCOME
        self.output = WAITING
        self.still: np.ndarray | None = None
        self.word: str | None = None
        self.predictions: list[SlicePrediction] = []
        self._lock = asyncio.Lock()

    async def load_model(self, loader: Callable[[], LetterClassifier] = load_classifier) -> bool:
        """Load the classifier once; a failure is reported, never retried."""
        try:
            self.classifier = await asyncio.to_thread(loader)
        except ModelLoadError as exc:
            logger.error("Model load failed: %s", exc)
            self.model_status = ModelStatus.FAILED
            self.notifier.notify(NoticeKind.ALERT, ModelLoadError.message)
            self.notifier.speak(ModelLoadError.message)
            return False
        self.model_status = ModelStatus.READY
        return True

    def actions(self) -> Actions:
        return Actions(
            start=self.state is SessionState.IDLE,
            capture=self.state is SessionState.READY,
            reset=self.state is SessionState.FROZEN,
        )

    def view(self, drain: bool = True) -> SessionView:
        """Snapshot the session for the client.

        With ``drain`` the pending notices are handed over and cleared;
        without it they are left for the next action response.
        """
        return SessionView(
            state=self.state,
            model=self.model_status,
            instructions=self.instructions,
            output=self.output,
            actions=self.actions(),
            word=self.word,
            predictions=self.predictions,
            still_visible=self.state is SessionState.FROZEN and self.still is not None,
            notices=self.notifier.drain() if drain else self.notifier.pending(),
        )

    async def start(self) -> bool:
        async with self._lock:
            if self.state is not SessionState.IDLE:
                raise ActionUnavailable()
            return await self._start_camera()

    async def capture(self, raw_count: str | int | None) -> Assembly:
        """Freeze the current frame and spell the word on it.

        Raises:
            InvalidLetterCount: before touching the camera, including a count
                wider than the frame (each letter needs at least one column).
            CameraNotReady: no live stream to capture from.
            ModelNotReady: the classifier never loaded.
            ClassificationError: the model failed on a slice; the session
                stays frozen with reset enabled.
        """
        async with self._lock:
            try:
                num_letters = parse_letter_count(raw_count)
            except InvalidLetterCount as exc:
                self.notifier.speak(exc.message)
                raise

            if self.state is not SessionState.READY or not self.camera.ready:
                self.notifier.speak(CameraNotReady.message)
                raise CameraNotReady()

            info = self.camera.info
            if info is not None and num_letters > info.width:
                logger.warning("Letter count %d exceeds frame width %d", num_letters, info.width)
                self.notifier.speak(InvalidLetterCount.message)
                raise InvalidLetterCount()

            if self.classifier is None:
                logger.warning("Capture requested but model is %s", self.model_status.value)
                self.notifier.speak(ModelNotReady.message)
                raise ModelNotReady()

            try:
                frame = await asyncio.to_thread(self.camera.read)
            except CameraNotReady as exc:
                self.notifier.speak(exc.message)
                raise
            self.camera.stop()
            self.still = frame
            self.state = SessionState.FROZEN
            self.predictions = []
            self.word = None

            height, width = frame.shape[:2]
            logger.info("Captured %dx%d frame, letters=%d", width, height, num_letters)

            predictions = []
            try:
                for index, segment in enumerate(slice_frame(frame, num_letters)):
                    character, confidence = await asyncio.to_thread(self.classifier.classify, segment)
                    predictions.append(
                        SlicePrediction(index=index, character=character, confidence=round(confidence, 4))
                    )
                    logger.debug("slice=%d char=%s conf=%.3f", index, character, confidence)
            except Exception as exc:
                logger.exception("Classification failed at slice %d", len(predictions))
                self.notifier.notify(NoticeKind.ALERT, CLASSIFY_FAILED)
                self._set_output(CLASSIFY_FAILED)
                self.notifier.speak(CLASSIFY_FAILED_SPEECH)
                raise ClassificationError() from exc

            assembly = assemble([p.character for p in predictions])
            self.predictions = predictions
            self.word = assembly.word
            self._set_output(assembly.output_text)
            self.notifier.speak(assembly.speech)
            logger.info("Assembled word=%r all_unknown=%s", assembly.word, assembly.all_unknown)
            return assembly

    async def reset(self) -> bool:
        async with self._lock:
            if self.state is not SessionState.FROZEN:
                raise ActionUnavailable()
            self.still = None
            self.word = None
            self.predictions = []
            self._set_output(WAITING)
            self._set_instructions(RESTARTING_CAMERA)
            self.notifier.speak(CAPTURE_AGAIN)
            return await self._start_camera()

    async def _start_camera(self) -> bool:
        self.state = SessionState.STARTING
        self._set_instructions(REQUESTING_CAMERA)
        self.notifier.speak(REQUESTING_CAMERA)

        try:
            await asyncio.to_thread(self.camera.start)
        except CameraError as exc:
            logger.warning("Camera start failed: %s", type(exc).__name__)
            self.state = SessionState.IDLE
            self.notifier.notify(NoticeKind.ALERT, exc.alert)
            self._set_instructions(exc.message)
            self.notifier.speak(exc.speech)
            return False

        self.state = SessionState.READY
        self._set_instructions(CAMERA_READY)
        self.notifier.speak(CAMERA_READY)
        return True

    def _set_instructions(self, text: str) -> None:
        self.instructions = text
        self.notifier.notify(NoticeKind.INSTRUCTIONS, text)

    def _set_output(self, text: str) -> None:
        self.output = text
        self.notifier.notify(NoticeKind.OUTPUT, text)


_session: SpellerSession | None = None


def get_session() -> SpellerSession:
    """Return the process-wide speller session, creating it on first call."""
    global _session
    if _session is None:
        _session = SpellerSession()
    return _session
