"""Camera session manager backed by OpenCV."""

import logging
import os
import sys
import threading
import time
from dataclasses import dataclass
from pathlib import Path

import cv2
import numpy as np

from services.errors import CameraError, CameraNotFound, CameraNotReady, CameraPermissionDenied

logger = logging.getLogger(__name__)

# Index of the rear ("environment") camera on the kiosk.
CAMERA_INDEX = int(os.environ.get("POPIT_CAMERA_INDEX", "0"))
WARMUP_SECONDS = float(os.environ.get("POPIT_CAMERA_WARMUP_SECONDS", "5"))


@dataclass(frozen=True)
class CameraInfo:
    """Stream metadata, known once the first frame arrives."""

    width: int
    height: int


class CameraSession:
    """Owns the single capture device handle.

    At most one ``cv2.VideoCapture`` is open at a time: ``start`` always
    releases the previous handle before opening a new one.
    """

    def __init__(self, camera_index: int = CAMERA_INDEX, warmup_seconds: float = WARMUP_SECONDS):
        self.camera_index = camera_index
        self.warmup_seconds = warmup_seconds
        self._capture: cv2.VideoCapture | None = None
        self._info: CameraInfo | None = None
        self._lock = threading.Lock()

    @property
    def ready(self) -> bool:
        return self._capture is not None and self._info is not None

    @property
    def info(self) -> CameraInfo | None:
        return self._info

    def start(self) -> CameraInfo:
        """Open the camera and block until its first frame is available.

        Raises:
            CameraPermissionDenied: the device exists but access is refused.
            CameraNotFound: there is no such device.
            CameraError: anything else, including a warm-up timeout.
        """
        with self._lock:
            self._release()

            try:
                capture = cv2.VideoCapture(self.camera_index)
            except cv2.error as exc:
                logger.error("OpenCV failed to open camera %d: %s", self.camera_index, exc)
                raise CameraError() from exc

            if not capture.isOpened():
                capture.release()
                raise self._open_failure()

            frame = self._wait_first_frame(capture)
            if frame is None:
                capture.release()
                logger.error(
                    "Camera %d produced no frame within %.1fs",
                    self.camera_index, self.warmup_seconds,
                )
                raise CameraError()

            height, width = frame.shape[:2]
            self._capture = capture
            self._info = CameraInfo(width=width, height=height)
            logger.info("Camera %d opened: %dx%d", self.camera_index, width, height)
            return self._info

    def stop(self) -> None:
        """Release the stream if one is open; no-op otherwise."""
        with self._lock:
            self._release()

    def read(self) -> np.ndarray:
        """Return the current frame as an RGB array."""
        with self._lock:
            if self._capture is None:
                raise CameraNotReady()
            ok, frame = self._capture.read()
        if not ok or frame is None:
            logger.warning("Failed to read frame from camera %d", self.camera_index)
            raise CameraNotReady()
        return cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)

    def _release(self) -> None:
        if self._capture is not None:
            self._capture.release()
            logger.info("Camera %d released", self.camera_index)
        self._capture = None
        self._info = None

    def _wait_first_frame(self, capture: cv2.VideoCapture) -> np.ndarray | None:
        deadline = time.monotonic() + self.warmup_seconds
        while True:
            ok, frame = capture.read()
            if ok and frame is not None:
                return frame
            if time.monotonic() >= deadline:
                return None
            time.sleep(0.05)

    def _open_failure(self) -> CameraError:
        """Classify why the device could not be opened."""
        device = Path(f"/dev/video{self.camera_index}")
        if sys.platform.startswith("linux"):
            if not device.exists():
                logger.error("No camera device at %s", device)
                return CameraNotFound()
            if not os.access(device, os.R_OK | os.W_OK):
                logger.error("Permission denied for %s", device)
                return CameraPermissionDenied()
            logger.error("Camera %s exists but could not be opened", device)
            return CameraError()
        logger.error("Failed to open camera %d", self.camera_index)
        return CameraNotFound()
