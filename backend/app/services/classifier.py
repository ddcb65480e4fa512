import logging
import os
from pathlib import Path

import mediapipe as mp
import numpy as np
from mediapipe.tasks import python
from mediapipe.tasks.python import vision

from services.errors import ModelLoadError
from services.segmentation import prepare_slice

logger = logging.getLogger(__name__)

_MODEL_DIR = Path(__file__).resolve().parent.parent / "model"
MODEL_PATH = Path(os.environ.get("POPIT_MODEL_PATH", _MODEL_DIR / "letters.tflite"))

# Class index -> display character, in the model's output order.
ALPHABET = "AÁBCDEÉFGHIÍJKLMNÑOÓPQRSTUÚVWXYZ"
UNKNOWN = "?"
CONFIDENCE_THRESHOLD = 0.6


def letter_for_index(index: int) -> str:
    """Map a class index to its character, or ``?`` outside the table."""
    if 0 <= index < len(ALPHABET):
        return ALPHABET[index]
    return UNKNOWN


def decide(probs: np.ndarray) -> tuple[str, float]:
    """Reduce a probability vector to (character, confidence).

    A best probability below CONFIDENCE_THRESHOLD yields ``?``; a score
    exactly at the threshold is accepted.
    """
    if len(probs) == 0:
        return UNKNOWN, 0.0
    index = int(np.argmax(probs))
    confidence = float(probs[index])
    if confidence < CONFIDENCE_THRESHOLD:
        return UNKNOWN, confidence
    return letter_for_index(index), confidence


class LetterClassifier:
    """Per-slice letter classification on top of a MediaPipe ImageClassifier."""

    def __init__(self, classifier: vision.ImageClassifier):
        self._classifier = classifier

    def probabilities(self, image: np.ndarray) -> np.ndarray:
        """Run the model on a prepared RGB slice, returning scores by class index."""
        mp_image = mp.Image(image_format=mp.ImageFormat.SRGB, data=np.ascontiguousarray(image))
        result = self._classifier.classify(mp_image)

        if not result.classifications:
            return np.zeros(0, dtype=np.float32)

        categories = result.classifications[0].categories
        size = max((c.index for c in categories), default=-1) + 1
        probs = np.zeros(size, dtype=np.float32)
        for category in categories:
            probs[category.index] = category.score
        return probs

    def classify(self, segment: np.ndarray) -> tuple[str, float]:
        """Classify one letter slice of the captured frame."""
        if segment.size == 0:
            return UNKNOWN, 0.0
        return decide(self.probabilities(prepare_slice(segment)))


def load_classifier(path: Path = MODEL_PATH) -> LetterClassifier:
    """Load the letter model from disk.

    Raises:
        ModelLoadError: the file is missing or MediaPipe rejects it.
    """
    path = Path(path)
    if not path.exists():
        raise ModelLoadError(f"Model file not found: {path}")

    # max_results=-1 keeps every category so the full distribution is available.
    options = vision.ImageClassifierOptions(
        base_options=python.BaseOptions(model_asset_path=str(path)),
        max_results=-1,
    )
    try:
        classifier = vision.ImageClassifier.create_from_options(options)
    except (RuntimeError, ValueError) as exc:
        raise ModelLoadError(f"Could not load model {path}: {exc}") from exc

    logger.info("Letter classifier loaded from %s", path)
    return LetterClassifier(classifier)
