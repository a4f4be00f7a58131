"""
Plane Geometry

Pure vector math used to cross-reference slices:
- Plane normal from row/column direction cosines
- Perpendicular distance from a point to a slice plane
- Image-space <-> patient-space point conversion

All functions return new arrays and never mutate their arguments.

Inputs:
    - Vector3 values (numpy arrays, tuples, DICOM multi-values)
    - ImagePlane and Point2D from core.image_plane

Outputs:
    - numpy Vector3 results, scalar distances, image-space Point2D

Requirements:
    - numpy
"""

import numpy as np

from core.image_plane import IMAGE_SPACE, ImagePlane, Point2D


def to_vector3(values) -> np.ndarray:
    """Convert any 3-element sequence to a new float64 array of shape (3,)."""
    vec = np.array([float(v) for v in values], dtype=np.float64)
    if vec.shape != (3,):
        raise ValueError(f"Expected 3 components, got {vec.shape[0]}")
    return vec


def normal(row_cosines, column_cosines) -> np.ndarray:
    """
    Plane normal as column x row.

    The operand order fixes the sign convention; every distance comparison
    uses this same function.
    """
    return np.cross(to_vector3(column_cosines), to_vector3(row_cosines))


def plane_distance(plane_normal, plane_origin, point) -> float:
    """
    Distance from point to the plane through plane_origin with plane_normal.

    Malformed input (NaN components, zero-length normal) is not rejected;
    NaN propagates to the result.
    """
    n = to_vector3(plane_normal)
    return float(abs(np.dot(n, to_vector3(plane_origin)) - np.dot(n, to_vector3(point))))


def _axis_vectors(plane: ImagePlane) -> np.ndarray:
    """3x2 matrix mapping (column, row) image offsets to patient-space offsets."""
    x_axis = to_vector3(plane.row_cosines) * plane.column_pixel_spacing
    y_axis = to_vector3(plane.column_cosines) * plane.row_pixel_spacing
    return np.column_stack((x_axis, y_axis))


def image_point_to_patient_point(image_point: Point2D, plane: ImagePlane) -> np.ndarray:
    """
    Map an image-space point on a slice to patient space.

    Args:
        image_point: Point2D in image space (x = column, y = row)
        plane: ImagePlane of the slice

    Returns:
        Patient-space Vector3 in mm
    """
    image_point.require_space(IMAGE_SPACE)
    offset = _axis_vectors(plane) @ np.array([image_point.x, image_point.y], dtype=np.float64)
    return to_vector3(plane.image_position_patient) + offset


def project_patient_point_to_image_plane(patient_point, plane: ImagePlane) -> Point2D:
    """
    Project a patient-space point onto a slice and return its image coordinate.

    The in-plane component is solved by least squares against the two axis
    vectors, so the result is the orthogonal projection even when the
    direction cosines are not exactly orthonormal. The coordinate is not
    clipped to the image bounds.

    Args:
        patient_point: Vector3 in patient space
        plane: ImagePlane of the target slice

    Returns:
        Point2D in image space
    """
    offset = to_vector3(patient_point) - to_vector3(plane.image_position_patient)
    solution, _, _, _ = np.linalg.lstsq(_axis_vectors(plane), offset, rcond=None)
    return Point2D(float(solution[0]), float(solution[1]), IMAGE_SPACE)


def is_inside_image(image_point: Point2D, plane: ImagePlane) -> bool:
    """True if the rounded image coordinate falls on a pixel of the slice."""
    image_point.require_space(IMAGE_SPACE)
    x = round(image_point.x)
    y = round(image_point.y)
    return 0 <= x < plane.columns and 0 <= y < plane.rows
