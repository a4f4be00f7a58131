"""
Slice Locator

Finds the slice of a stack whose plane lies closest to a patient-space point.

Inputs:
    - Patient-space point (Vector3)
    - SliceStack of a target view
    - Metadata lookup: image id -> ImagePlane or None

Outputs:
    - LocatedSlice (index, image id, plane, distance), or None if no slice
      in the stack has plane geometry

Requirements:
    - numpy (via core.plane_geometry)
"""

import math
from dataclasses import dataclass
from typing import Callable, Optional

from core.image_plane import ImagePlane
from core.plane_geometry import normal, plane_distance, to_vector3
from core.slice_stack import SliceStack


@dataclass(frozen=True)
class LocatedSlice:
    """Best-matching slice of a stack."""

    index: int
    image_id: str
    plane: ImagePlane
    distance: float


class SliceLocator:
    """
    Linear scan over a stack by plane distance.

    Stacks hold tens to a few hundred slices and the scan runs at
    interaction rate, so no spatial index is kept.
    """

    def __init__(self, get_image_plane: Callable[[str], Optional[ImagePlane]]):
        """
        Args:
            get_image_plane: Metadata lookup returning the plane of an image id
        """
        self.get_image_plane = get_image_plane

    def locate(self, patient_point, stack: SliceStack) -> Optional[LocatedSlice]:
        """
        Find the slice nearest to patient_point.

        Slices without plane geometry are skipped. On equal distances the
        earliest slice in stack order is kept.

        Args:
            patient_point: Vector3 in patient space
            stack: Stack to search

        Returns:
            LocatedSlice, or None when no slice has usable geometry
        """
        point = to_vector3(patient_point)
        best: Optional[LocatedSlice] = None
        min_distance = math.inf

        for index, image_id in enumerate(stack.image_ids):
            plane = self.get_image_plane(image_id)
            if plane is None:
                continue

            plane_normal = normal(plane.row_cosines, plane.column_cosines)
            distance = plane_distance(plane_normal, plane.image_position_patient, point)

            if distance < min_distance:
                min_distance = distance
                best = LocatedSlice(index, image_id, plane, distance)

        return best
