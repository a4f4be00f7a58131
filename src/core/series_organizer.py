"""
DICOM Series Organizer

Groups DICOM headers into series and turns each series into a SliceStack,
registering every slice with the image plane provider and the slice loader.

Series are keyed by the composite key (SeriesInstanceUID + SeriesNumber).
Slices are ordered along the series' slice normal when every slice has plane
geometry, otherwise by InstanceNumber, then SliceLocation.

Inputs:
    - DICOM directory or (dataset, file_path) pairs

Outputs:
    - SeriesInfo records with their SliceStack

Requirements:
    - pydicom library
    - numpy for the normal projection
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple, Union

import numpy as np
import pydicom
from pydicom.dataset import Dataset
from pydicom.errors import InvalidDicomError

from core.image_plane import ImagePlane
from core.plane_geometry import normal
from core.slice_stack import SliceStack
from utils.dicom_utils import get_composite_series_key

if TYPE_CHECKING:
    from core.image_plane_provider import ImagePlaneProvider
    from core.slice_loader import SliceLoader


@dataclass
class SeriesInfo:
    """One organized series."""

    series_key: str
    description: str
    stack: SliceStack
    datasets: List[Dataset] = field(default_factory=list)


def scan_dicom_headers(directory: Union[str, Path]) -> List[Tuple[Dataset, str]]:
    """
    Read the header of every image file under directory (recursive).

    Files that are not DICOM, or DICOM objects without Rows/Columns
    (presentation states, reports), are skipped.

    Returns:
        List of (dataset, file_path) pairs
    """
    headers: List[Tuple[Dataset, str]] = []
    for root, _, files in os.walk(str(directory)):
        for name in sorted(files):
            file_path = os.path.join(root, name)
            try:
                dataset = pydicom.dcmread(file_path, stop_before_pixels=True, force=True)
            except InvalidDicomError as e:
                print(f"[ORGANIZER] Skipping {file_path}: {e}")
                continue
            except Exception as e:
                # force=True parses arbitrary bytes; any failure means "not an image"
                print(f"[ORGANIZER] Skipping unreadable file {file_path}: {e}")
                continue
            if not hasattr(dataset, 'Rows') or not hasattr(dataset, 'Columns'):
                continue
            headers.append((dataset, file_path))
    return headers


class SeriesOrganizer:
    """
    Builds slice stacks from DICOM headers.

    Image ids are "<series_key>:<position in stack>", stable for one
    organize() call.
    """

    def __init__(self, plane_provider: Optional['ImagePlaneProvider'] = None,
                 slice_loader: Optional['SliceLoader'] = None,
                 prevent_cache: bool = False):
        self.plane_provider = plane_provider
        self.slice_loader = slice_loader
        self.prevent_cache = prevent_cache
        self.series: Dict[str, SeriesInfo] = {}

    def organize(self, items: List[Tuple[Dataset, Optional[str]]]) -> List[SeriesInfo]:
        """
        Group, sort and register slices.

        Args:
            items: (dataset, file_path) pairs; file_path may be None for in-memory datasets

        Returns:
            SeriesInfo list in order of first appearance
        """
        grouped: Dict[str, List[Tuple[Dataset, Optional[str]]]] = {}
        for dataset, file_path in items:
            key = get_composite_series_key(dataset)
            grouped.setdefault(key, []).append((dataset, file_path))

        organized: List[SeriesInfo] = []
        for series_key, slices in grouped.items():
            slices = self._sort_slices(slices)
            image_ids = [f"{series_key}:{index}" for index in range(len(slices))]
            for image_id, (dataset, file_path) in zip(image_ids, slices):
                self._register(image_id, dataset, file_path)

            first = slices[0][0]
            description = str(getattr(first, 'SeriesDescription', '') or series_key)
            stack = SliceStack(image_ids, current_index=len(image_ids) // 2,
                               prevent_cache=self.prevent_cache, series_key=series_key)
            info = SeriesInfo(series_key, description, stack, [ds for ds, _ in slices])
            self.series[series_key] = info
            organized.append(info)
        return organized

    def _register(self, image_id: str, dataset: Dataset, file_path: Optional[str]) -> None:
        if self.plane_provider is not None:
            self.plane_provider.add_dataset(image_id, dataset)
        if self.slice_loader is not None:
            if file_path is not None:
                self.slice_loader.add_file(image_id, file_path)
            else:
                self.slice_loader.add_dataset(image_id, dataset)

    def _sort_slices(self, slices: List[Tuple[Dataset, Optional[str]]]) -> List[Tuple[Dataset, Optional[str]]]:
        planes = [ImagePlane.from_dataset(dataset) for dataset, _ in slices]
        if all(plane is not None for plane in planes):
            series_normal = normal(planes[0].row_cosines, planes[0].column_cosines)
            positions = [float(np.dot(series_normal, plane.image_position_patient)) for plane in planes]
            order = sorted(range(len(slices)), key=lambda i: (positions[i], self._instance_key(slices[i][0])))
            return [slices[i] for i in order]
        return sorted(slices, key=lambda item: self._instance_key(item[0]))

    def _instance_key(self, dataset: Dataset) -> Tuple[float, float]:
        """InstanceNumber first, SliceLocation second; missing values sort last."""
        return (self._tag_float(dataset, 'InstanceNumber'), self._tag_float(dataset, 'SliceLocation'))

    @staticmethod
    def _tag_float(dataset: Dataset, keyword: str) -> float:
        value: Any = getattr(dataset, keyword, None)
        try:
            return float(value) if value is not None and str(value) != '' else float('inf')
        except (TypeError, ValueError):
            return float('inf')
