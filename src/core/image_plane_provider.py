"""
Image Plane Provider

Metadata lookup service mapping an image id to its ImagePlane.

Inputs:
    - In-memory pydicom Datasets or DICOM file paths, keyed by image id

Outputs:
    - ImagePlane per image id, or None when the slice has no plane geometry

Requirements:
    - pydicom for reading headers (pixel data is never read here)
    - core.image_plane for ImagePlane construction
"""

from pathlib import Path
from typing import Dict, Optional, Union

import pydicom
from pydicom.dataset import Dataset
from pydicom.errors import InvalidDicomError

from core.image_plane import ImagePlane
from utils.debug_log import debug_log


class ImagePlaneProvider:
    """
    Resolves and memoizes ImagePlane metadata.

    Results are cached per image id, including "no plane" results, so the
    locator can scan the same stack on every drag tick without re-reading
    headers.
    """

    def __init__(self):
        self._datasets: Dict[str, Dataset] = {}
        self._file_paths: Dict[str, Path] = {}
        self._planes: Dict[str, Optional[ImagePlane]] = {}

    def add_dataset(self, image_id: str, dataset: Dataset) -> None:
        """Register an in-memory dataset under image_id."""
        self._datasets[image_id] = dataset
        self._file_paths.pop(image_id, None)
        self._planes.pop(image_id, None)

    def add_file(self, image_id: str, file_path: Union[str, Path]) -> None:
        """Register a DICOM file under image_id; its header is read on first lookup."""
        self._file_paths[image_id] = Path(file_path)
        self._datasets.pop(image_id, None)
        self._planes.pop(image_id, None)

    def remove(self, image_id: str) -> None:
        self._datasets.pop(image_id, None)
        self._file_paths.pop(image_id, None)
        self._planes.pop(image_id, None)

    def clear(self) -> None:
        self._datasets.clear()
        self._file_paths.clear()
        self._planes.clear()

    def __contains__(self, image_id: str) -> bool:
        return image_id in self._datasets or image_id in self._file_paths

    def get_image_plane(self, image_id: Optional[str]) -> Optional[ImagePlane]:
        """
        Get the plane geometry of an image.

        Args:
            image_id: Registered image id (None is accepted and yields None)

        Returns:
            ImagePlane, or None if the image is unknown, unreadable, or lacks
            position/orientation
        """
        if image_id is None:
            return None
        if image_id in self._planes:
            return self._planes[image_id]

        dataset = self._datasets.get(image_id)
        if dataset is None and image_id in self._file_paths:
            dataset = self._read_header(image_id, self._file_paths[image_id])
        if dataset is None:
            return None

        plane = ImagePlane.from_dataset(dataset)
        self._planes[image_id] = plane
        return plane

    def _read_header(self, image_id: str, file_path: Path) -> Optional[Dataset]:
        try:
            return pydicom.dcmread(str(file_path), stop_before_pixels=True, force=True)
        except (InvalidDicomError, OSError, ValueError) as e:
            print(f"[CROSSREF] Warning: Could not read header of {file_path}: {e}")
            debug_log("image_plane_provider:_read_header", "header read failed",
                      {"image_id": image_id, "path": str(file_path), "error": str(e)})
            self._planes[image_id] = None
            return None
