"""
Image Plane Model

Value types shared by the cross-reference geometry:
- Point2D: a 2D coordinate tagged with the space it lives in
- ImagePlane: per-slice placement of a 2D image inside patient space

Inputs:
    - pydicom Dataset (ImagePositionPatient, ImageOrientationPatient,
      PixelSpacing, Rows, Columns)

Outputs:
    - Immutable Point2D / ImagePlane instances

Requirements:
    - numpy for vectors
    - pydicom for Dataset type
    - utils.dicom_utils for tag extraction
"""

from dataclasses import dataclass
from typing import Optional

import numpy as np
from pydicom.dataset import Dataset

from utils.dicom_utils import (
    get_image_orientation,
    get_image_position,
    get_matrix_size,
    get_pixel_spacing,
)

IMAGE_SPACE = "image"
CANVAS_SPACE = "canvas"
POINT_SPACES = (IMAGE_SPACE, CANVAS_SPACE)


@dataclass(frozen=True)
class Point2D:
    """
    2D coordinate.

    `space` is "image" for local image-index coordinates (x = column,
    y = row) or "canvas" for widget pixels. Points in different spaces are
    never interchangeable.
    """

    x: float
    y: float
    space: str = IMAGE_SPACE

    def __post_init__(self):
        if self.space not in POINT_SPACES:
            raise ValueError(f"Unknown point space: {self.space!r}")

    def require_space(self, space: str) -> "Point2D":
        """Return self, raising ValueError if the point is in another space."""
        if self.space != space:
            raise ValueError(f"Expected a {space}-space point, got {self.space}-space")
        return self


@dataclass(frozen=True, eq=False)
class ImagePlane:
    """
    Geometry of one slice in patient space.

    Vectors are numpy float arrays of shape (3,). Row cosines point along
    increasing column index, column cosines along increasing row index.
    Spacing follows DICOM PixelSpacing order: row spacing is the distance
    between rows, column spacing the distance between columns.
    """

    image_position_patient: np.ndarray
    row_cosines: np.ndarray
    column_cosines: np.ndarray
    row_pixel_spacing: float = 1.0
    column_pixel_spacing: float = 1.0
    rows: int = 0
    columns: int = 0

    @classmethod
    def from_dataset(cls, dataset: Dataset) -> Optional["ImagePlane"]:
        """
        Build an ImagePlane from a DICOM dataset.

        Args:
            dataset: pydicom Dataset

        Returns:
            ImagePlane, or None when position or orientation is missing
        """
        position = get_image_position(dataset)
        orientation = get_image_orientation(dataset)
        if position is None or orientation is None:
            return None
        row_cosines, column_cosines = orientation

        spacing = get_pixel_spacing(dataset) or (1.0, 1.0)
        matrix = get_matrix_size(dataset) or (0, 0)
        return cls(
            image_position_patient=position,
            row_cosines=row_cosines,
            column_cosines=column_cosines,
            row_pixel_spacing=spacing[0],
            column_pixel_spacing=spacing[1],
            rows=matrix[0],
            columns=matrix[1],
        )
