"""
Cross-Reference Errors

Error kinds reported while cross-referencing a probe point:
- MissingSourcePlane: the source view has no usable plane (aborts the pass)
- MissingStackMetadata, NoUsableSlice, LoadFailure: per target view, the
  view is skipped and the other views are unaffected
- SliceLoadError: raised by the slice loader when an image cannot be decoded

Requirements:
    - Standard library only
"""

from typing import Any, Optional


class CrossReferenceError(Exception):
    """Base class for cross-reference conditions."""

    def __init__(self, message: str, view: Any = None):
        super().__init__(message)
        self.view = view


class MissingSourcePlane(CrossReferenceError):
    """Source view shows no image, or its image has no plane geometry."""

    def __init__(self, image_id: Optional[str], view: Any = None):
        super().__init__(f"Unable to retrieve image plane for source image {image_id}", view)
        self.image_id = image_id


class MissingStackMetadata(CrossReferenceError):
    """Target view has no slice stack to step through."""

    def __init__(self, view: Any = None):
        super().__init__(f"No stack for view {view!r}", view)


class NoUsableSlice(CrossReferenceError):
    """No slice in the target stack has plane geometry."""

    def __init__(self, view: Any = None):
        super().__init__(f"No slice with plane geometry in stack of view {view!r}", view)


class SliceLoadError(Exception):
    """An image could not be read or decoded."""

    def __init__(self, image_id: str, reason: str):
        super().__init__(f"Failed to load {image_id}: {reason}")
        self.image_id = image_id
        self.reason = reason


class LoadFailure(CrossReferenceError):
    """Loading the located slice for a target view failed."""

    def __init__(self, image_id: str, view: Any = None, cause: Optional[BaseException] = None):
        super().__init__(f"Failed to load slice {image_id} for view {view!r}: {cause}", view)
        self.image_id = image_id
        self.cause = cause
