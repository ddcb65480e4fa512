"""Shared fixtures: fake camera and classifier so no device or model is needed."""

import numpy as np
import pytest

from services.camera import CameraInfo
from services.errors import CameraNotReady
from services.notifier import Notifier
from services.speller import SpellerSession


class FakeCamera:
    """Stands in for CameraSession; records how it was driven."""

    def __init__(self, frame=None, error=None):
        self.frame = frame if frame is not None else np.zeros((480, 640, 3), dtype=np.uint8)
        self.error = error
        self.ready = False
        self.info = None
        self.start_calls = 0
        self.stop_calls = 0
        self.read_calls = 0

    def start(self):
        self.start_calls += 1
        if self.ready:
            self.stop()
        if self.error is not None:
            raise self.error
        self.ready = True
        height, width = self.frame.shape[:2]
        self.info = CameraInfo(width=width, height=height)
        return self.info

    def stop(self):
        self.stop_calls += 1
        self.ready = False
        self.info = None

    def read(self):
        self.read_calls += 1
        if not self.ready:
            raise CameraNotReady()
        return self.frame.copy()


class FakeClassifier:
    """Returns scripted (character, confidence) pairs, one per slice."""

    def __init__(self, results):
        self.results = list(results)
        self.segments = []

    def classify(self, segment):
        self.segments.append(segment)
        return self.results[len(self.segments) - 1]


class FailingClassifier(FakeClassifier):
    """Classifies normally until slice ``fail_at``, then raises."""

    def __init__(self, results, fail_at):
        super().__init__(results)
        self.fail_at = fail_at

    def classify(self, segment):
        if len(self.segments) == self.fail_at:
            raise RuntimeError("inference backend crashed")
        return super().classify(segment)


@pytest.fixture
def frame():
    # Column x holds value x % 256 so slices can be told apart.
    row = (np.arange(643) % 256).astype(np.uint8)
    return np.repeat(np.tile(row[None, :, None], (10, 1, 1)), 3, axis=2)


@pytest.fixture
def camera(frame):
    return FakeCamera(frame=frame)


@pytest.fixture
def notifier():
    return Notifier()


@pytest.fixture
def make_session(camera, notifier):
    def _make(results=None, classifier=None):
        if classifier is None and results is not None:
            classifier = FakeClassifier(results)
        return SpellerSession(camera=camera, notifier=notifier, classifier=classifier)

    return _make


@pytest.fixture
def failing_classifier():
    # Third slice raises.
    return FailingClassifier([("A", 0.9)] * 5, fail_at=2)
