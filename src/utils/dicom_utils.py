"""
DICOM Utility Functions

Helper functions for reading the plane geometry tags of a DICOM dataset:
- Image position and orientation (patient coordinates)
- Pixel spacing with fallbacks
- Matrix size
- Composite series key used to group slices into stacks

Inputs:
    - pydicom.Dataset objects

Outputs:
    - NumPy vectors, spacing tuples, identifiers (or None when unavailable)

Requirements:
    - pydicom library
    - numpy for vectors
"""

from typing import Optional, Tuple
import numpy as np
from pydicom.dataset import Dataset


def _float_triplet(values, offset: int = 0) -> Optional[np.ndarray]:
    """Read three floats from a DICOM multi-value starting at offset."""
    try:
        if values is None or len(values) < offset + 3:
            return None
        vec = np.array([float(values[offset + i]) for i in range(3)], dtype=np.float64)
    except (TypeError, ValueError):
        return None
    if not np.all(np.isfinite(vec)):
        return None
    return vec


def get_image_position(dataset: Dataset) -> Optional[np.ndarray]:
    """
    Get ImagePositionPatient (0020,0032) from DICOM dataset.

    Args:
        dataset: pydicom Dataset

    Returns:
        NumPy array of [X, Y, Z] coordinates in mm, or None if not available
    """
    return _float_triplet(getattr(dataset, 'ImagePositionPatient', None))


def get_image_orientation(dataset: Dataset) -> Optional[Tuple[np.ndarray, np.ndarray]]:
    """
    Get ImageOrientationPatient (0020,0037) from DICOM dataset.

    Zero-length direction vectors are rejected since they carry no orientation.

    Args:
        dataset: pydicom Dataset

    Returns:
        Tuple of (row_cosine, column_cosine) arrays, or None if not available
    """
    orient = getattr(dataset, 'ImageOrientationPatient', None)
    row_cosine = _float_triplet(orient, 0)
    col_cosine = _float_triplet(orient, 3)
    if row_cosine is None or col_cosine is None:
        return None
    if np.linalg.norm(row_cosine) == 0 or np.linalg.norm(col_cosine) == 0:
        return None
    return (row_cosine, col_cosine)


def get_pixel_spacing(dataset: Dataset) -> Optional[Tuple[float, float]]:
    """
    Get pixel spacing from DICOM dataset.

    Checks Pixel Spacing (0028,0030) first and Imager Pixel Spacing
    (0018,1164) as fallback.

    Args:
        dataset: pydicom Dataset

    Returns:
        Tuple of (row_spacing, column_spacing) in mm, or None if not available
    """
    for keyword in ('PixelSpacing', 'ImagerPixelSpacing'):
        spacing = getattr(dataset, keyword, None)
        try:
            if spacing is not None and len(spacing) >= 2:
                row_spacing = float(spacing[0])
                col_spacing = float(spacing[1])
                if row_spacing > 0 and col_spacing > 0:
                    return (row_spacing, col_spacing)
        except (TypeError, ValueError):
            continue
    return None


def get_matrix_size(dataset: Dataset) -> Optional[Tuple[int, int]]:
    """
    Get (rows, columns) from DICOM dataset.

    Returns:
        Tuple of (rows, columns), or None if either is missing or not positive
    """
    try:
        rows = int(getattr(dataset, 'Rows', 0) or 0)
        columns = int(getattr(dataset, 'Columns', 0) or 0)
    except (TypeError, ValueError):
        return None
    if rows <= 0 or columns <= 0:
        return None
    return (rows, columns)


def get_composite_series_key(dataset: Dataset) -> str:
    """
    Build the series key used to group slices into one stack.

    Combines SeriesInstanceUID with SeriesNumber so that the same UID reused
    with different series numbers is kept apart.

    Args:
        dataset: pydicom Dataset

    Returns:
        "SeriesInstanceUID_SeriesNumber", or the UID alone when there is no number
    """
    series_uid = str(getattr(dataset, 'SeriesInstanceUID', '') or '')
    series_number = getattr(dataset, 'SeriesNumber', None)
    if series_number is None or str(series_number) == '':
        return series_uid
    return f"{series_uid}_{series_number}"
