"""
DICOM window/level handling.

Turns a decoded pixel array into the 8-bit display image a view paints:
applies rescale slope/intercept and the dataset's window center/width,
falling back to the pixel range when the window tags are absent.

Inputs:
    - pydicom Dataset, pixel arrays

Outputs:
    - Windowed pixel arrays (0-255 uint8), Pillow images

Requirements:
    - numpy, pydicom, Pillow
"""

from typing import Optional, Tuple

import numpy as np
from PIL import Image
from pydicom.dataset import Dataset
from pydicom.multival import MultiValue


def _first_value(value) -> Optional[float]:
    """First numeric entry of a possibly multi-valued tag."""
    if value is None:
        return None
    if isinstance(value, (list, tuple, MultiValue)):
        if len(value) == 0:
            return None
        value = value[0]
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def get_rescale_parameters(dataset: Dataset) -> Tuple[float, float]:
    """Return (slope, intercept); identity when the tags are missing."""
    slope = _first_value(getattr(dataset, 'RescaleSlope', None))
    intercept = _first_value(getattr(dataset, 'RescaleIntercept', None))
    if slope is None or slope == 0.0:
        slope = 1.0
    if intercept is None:
        intercept = 0.0
    return slope, intercept


def apply_window_level(
    pixel_array: np.ndarray,
    window_center: float,
    window_width: float,
) -> np.ndarray:
    """Apply window/level to a (rescaled) pixel array. Returns 0-255 uint8."""
    window_min = window_center - window_width / 2.0
    window_max = window_center + window_width / 2.0
    if window_max <= window_min:
        return np.zeros(pixel_array.shape, dtype=np.uint8)
    windowed = np.clip(pixel_array.astype(np.float64), window_min, window_max)
    return ((windowed - window_min) / (window_max - window_min) * 255.0).astype(np.uint8)


def get_window_from_dataset(dataset: Dataset, values: np.ndarray) -> Tuple[float, float]:
    """
    Window center and width for display.

    Uses WindowCenter/WindowWidth (first value) when both are present and the
    width is positive, otherwise the min/max of the rescaled values.
    """
    center = _first_value(getattr(dataset, 'WindowCenter', None))
    width = _first_value(getattr(dataset, 'WindowWidth', None))
    if center is not None and width is not None and width > 0:
        return center, width

    value_min = float(np.min(values)) if values.size else 0.0
    value_max = float(np.max(values)) if values.size else 0.0
    return (value_min + value_max) / 2.0, max(value_max - value_min, 1.0)


def to_display_image(dataset: Dataset, pixel_array: np.ndarray) -> Image.Image:
    """
    Build the 8-bit Pillow image shown for a slice.

    Grayscale arrays are rescaled and windowed; RGB arrays are passed through
    as uint8. Multi-frame arrays show their first frame.
    """
    array = pixel_array
    if array.ndim == 4 or (array.ndim == 3 and array.shape[-1] not in (3, 4)):
        array = array[0]

    if array.ndim == 3:
        return Image.fromarray(np.ascontiguousarray(np.clip(array[..., :3], 0, 255).astype(np.uint8)))

    slope, intercept = get_rescale_parameters(dataset)
    values = array.astype(np.float64) * slope + intercept
    center, width = get_window_from_dataset(dataset, values)
    return Image.fromarray(apply_window_level(values, center, width))
