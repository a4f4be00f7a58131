"""
View Registry

Keeps the open slice views and their stacks, and exposes the view operations
the cross-reference coordinator and the synced probe tool need.

Inputs:
    - SliceView instances and their SliceStacks

Outputs:
    - Enumeration of enabled views, display and repaint requests

Requirements:
    - PySide6 for signals
"""

from typing import Callable, Dict, List, Optional, Tuple

from PySide6.QtCore import QObject, Signal

from core.slice_loader import LoadedSlice
from core.slice_stack import SliceStack
from gui.slice_view import SliceView


class ViewRegistry(QObject):
    """
    Registry of open views.

    A view without a stack is still listed (it can be a probe source) but
    cannot be cross-referenced as a target.
    """

    # Signals
    views_changed = Signal()  # Emitted when a view is added or removed

    def __init__(self):
        super().__init__()
        self._views: List[SliceView] = []
        self._stacks: Dict[SliceView, SliceStack] = {}

    def add_view(self, view: SliceView, stack: Optional[SliceStack] = None) -> None:
        if view not in self._views:
            self._views.append(view)
        if stack is not None:
            self._stacks[view] = stack
        self.views_changed.emit()

    def remove_view(self, view: SliceView) -> None:
        if view not in self._views:
            return
        self._views.remove(view)
        self._stacks.pop(view, None)
        self.views_changed.emit()

    def set_stack(self, view: SliceView, stack: Optional[SliceStack]) -> None:
        if stack is None:
            self._stacks.pop(view, None)
        else:
            self._stacks[view] = stack

    def enabled_views(self) -> List[SliceView]:
        return [view for view in self._views if view.isEnabled()]

    def current_image_id(self, view: SliceView) -> Optional[str]:
        return view.current_image_id

    def stack_of(self, view: SliceView) -> Optional[SliceStack]:
        return self._stacks.get(view)

    def image_size(self, view: SliceView) -> Optional[Tuple[int, int]]:
        return view.image_size()

    def display(self, view: SliceView, loaded_slice: LoadedSlice) -> None:
        view.display_slice(loaded_slice)

    def add_render_listener(self, view: SliceView, listener: Callable) -> None:
        view.add_render_listener(listener)

    def remove_render_listener(self, view: SliceView, listener: Callable) -> None:
        view.remove_render_listener(listener)

    def request_render(self, view: SliceView) -> None:
        view.update()

    def redraw_all(self) -> None:
        for view in self._views:
            view.update()
