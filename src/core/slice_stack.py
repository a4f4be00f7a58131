"""
Slice Stack

Ordered series of slice image ids shown one at a time in a view.

Inputs:
    - Image ids (opaque strings) in display order
    - Switch requests from the cross-reference coordinator or slice navigation

Outputs:
    - Current index / current image id

Requirements:
    - typing for type hints
"""

from typing import List, Optional, Sequence


class SliceStack:
    """
    Slice ids of one view plus its navigation state.

    The view owns the stack; other components change the displayed slice
    only through switch_to(), which checks that the index and image id agree.
    """

    def __init__(self, image_ids: Sequence[str], current_index: int = 0,
                 prevent_cache: bool = False, series_key: str = ""):
        self.image_ids: List[str] = list(image_ids)
        if self.image_ids and not 0 <= current_index < len(self.image_ids):
            raise IndexError(f"current_index {current_index} out of range for {len(self.image_ids)} slices")
        self.current_index = current_index
        self.prevent_cache = prevent_cache
        self.series_key = series_key

    def __len__(self) -> int:
        return len(self.image_ids)

    @property
    def current_image_id(self) -> Optional[str]:
        if not self.image_ids:
            return None
        return self.image_ids[self.current_index]

    def switch_to(self, index: int, image_id: str) -> None:
        """
        Make index the current slice.

        Args:
            index: New current index
            image_id: Id of the image just displayed; must match image_ids[index]

        Raises:
            IndexError: index out of range
            ValueError: image_id does not belong at index
        """
        if not 0 <= index < len(self.image_ids):
            raise IndexError(f"Slice index {index} out of range for {len(self.image_ids)} slices")
        if self.image_ids[index] != image_id:
            raise ValueError(
                f"Image {image_id!r} is not at index {index} (found {self.image_ids[index]!r})"
            )
        self.current_index = index
