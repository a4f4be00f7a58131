"""
Slice Loader

Asynchronous image loading for slice stacks. Each load returns a
concurrent.futures.Future that resolves to a LoadedSlice or fails with
SliceLoadError. Decoding runs on a small thread pool; completed slices are
kept in a bounded LRU cache unless the caller asks for an uncached load.

Inputs:
    - Image ids registered with a file path or an in-memory Dataset
    - load(image_id, cache) requests

Outputs:
    - Futures resolving to LoadedSlice (dataset, pixel array, display image)

Requirements:
    - pydicom for reading files and decoding pixel data
    - numpy for pixel arrays
    - Pillow (via core.dicom_window_level) for display images
    - concurrent.futures for the worker pool
"""

import threading
from collections import OrderedDict
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Dict, Optional, Union

import numpy as np
import pydicom
from PIL import Image
from pydicom.dataset import Dataset

from core.cross_reference_errors import SliceLoadError
from core.dicom_window_level import to_display_image
from utils.debug_log import debug_log

if TYPE_CHECKING:
    from utils.config_manager import ConfigManager


@dataclass
class LoadedSlice:
    """Decoded slice ready for display."""

    image_id: str
    dataset: Dataset
    pixel_array: np.ndarray
    display_image: Image.Image

    @property
    def rows(self) -> int:
        return self.display_image.height

    @property
    def columns(self) -> int:
        return self.display_image.width


class SliceLoader:
    """
    Loads slices by image id.

    Cached loads (the default) reuse a previously decoded slice and store new
    ones; cache=False always decodes again and leaves the cache untouched.
    """

    def __init__(self, config_manager: Optional['ConfigManager'] = None,
                 executor: Optional[ThreadPoolExecutor] = None):
        """
        Args:
            config_manager: Optional ConfigManager for cache size and worker count
            executor: Optional executor (defaults to an owned ThreadPoolExecutor)
        """
        self.cache_size = config_manager.get_loader_cache_size() if config_manager else 256
        max_workers = config_manager.get_loader_max_workers() if config_manager else 4

        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="slice-loader"
        )
        self._file_paths: Dict[str, Path] = {}
        self._datasets: Dict[str, Dataset] = {}
        self._cache: "OrderedDict[str, LoadedSlice]" = OrderedDict()
        self._lock = threading.Lock()

    def add_file(self, image_id: str, file_path: Union[str, Path]) -> None:
        self._file_paths[image_id] = Path(file_path)
        self._datasets.pop(image_id, None)
        self._evict(image_id)

    def add_dataset(self, image_id: str, dataset: Dataset) -> None:
        self._datasets[image_id] = dataset
        self._file_paths.pop(image_id, None)
        self._evict(image_id)

    def is_cached(self, image_id: str) -> bool:
        with self._lock:
            return image_id in self._cache

    def clear_cache(self) -> None:
        with self._lock:
            self._cache.clear()

    def load(self, image_id: str, cache: bool = True) -> Future:
        """
        Request a slice.

        Args:
            image_id: Registered image id
            cache: Use and fill the LRU cache (False for prevent-cache stacks)

        Returns:
            Future resolving to LoadedSlice, or failing with SliceLoadError
        """
        if cache:
            with self._lock:
                cached = self._cache.get(image_id)
                if cached is not None:
                    self._cache.move_to_end(image_id)
            if cached is not None:
                future: Future = Future()
                future.set_result(cached)
                return future

        if image_id not in self._file_paths and image_id not in self._datasets:
            future = Future()
            future.set_exception(SliceLoadError(image_id, "unknown image id"))
            return future

        return self._executor.submit(self._load_blocking, image_id, cache)

    def shutdown(self, wait: bool = False) -> None:
        """Stop the owned worker pool; pending loads are cancelled when not waiting."""
        if self._owns_executor:
            self._executor.shutdown(wait=wait, cancel_futures=not wait)

    def _load_blocking(self, image_id: str, cache: bool) -> LoadedSlice:
        dataset = self._datasets.get(image_id)
        try:
            if dataset is None:
                dataset = pydicom.dcmread(str(self._file_paths[image_id]), force=True)
            pixel_array = dataset.pixel_array
            display_image = to_display_image(dataset, pixel_array)
        except Exception as e:
            debug_log("slice_loader:_load_blocking", "decode failed",
                      {"image_id": image_id, "error": str(e)})
            raise SliceLoadError(image_id, str(e)) from e

        loaded = LoadedSlice(image_id, dataset, pixel_array, display_image)
        if cache and self.cache_size > 0:
            with self._lock:
                self._cache[image_id] = loaded
                self._cache.move_to_end(image_id)
                while len(self._cache) > self.cache_size:
                    self._cache.popitem(last=False)
        return loaded

    def _evict(self, image_id: str) -> None:
        with self._lock:
            self._cache.pop(image_id, None)
