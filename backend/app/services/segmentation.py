"""Fixed-geometry slicing of a captured frame into letter segments."""

import numpy as np
from PIL import Image

MODEL_INPUT_SIZE = (224, 224)


def slice_bounds(width: int, num_letters: int) -> list[tuple[int, int]]:
    """Return the ``[x0, x1)`` column range of each letter slice.

    Slices share the width ``width // num_letters``; trailing columns that
    don't fill a whole slice are dropped.
    """
    if num_letters < 1:
        raise ValueError("num_letters must be positive")
    slice_width = width // num_letters
    return [(i * slice_width, (i + 1) * slice_width) for i in range(num_letters)]


def slice_frame(frame: np.ndarray, num_letters: int) -> list[np.ndarray]:
    """Cut ``frame`` (H x W x C) into ``num_letters`` full-height vertical slices."""
    return [frame[:, x0:x1] for x0, x1 in slice_bounds(frame.shape[1], num_letters)]


def prepare_slice(segment: np.ndarray, size: tuple[int, int] = MODEL_INPUT_SIZE) -> np.ndarray:
    """Nearest-neighbour resize of an RGB slice to the model's input size."""
    img = Image.fromarray(np.ascontiguousarray(segment)).convert("RGB")
    img = img.resize(size, Image.NEAREST)
    return np.asarray(img)

