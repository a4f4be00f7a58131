"""
Synced Probe Tool

Drag-driven probe that marks the pointer position on the source view and,
through the CrossReferenceCoordinator, the corresponding position on every
other view.

Inputs:
    - Drag start / move / end events from views (image and canvas points)
    - Render callbacks of every view (render_tool_data)

Outputs:
    - Redraw requests for all views while dragging
    - Local probe marker on the source view
    - on_point_selected calls to the coordinator

Requirements:
    - PySide6 for signals
    - CrossReferenceCoordinator for the cross-view pass
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Optional

from PySide6.QtCore import QObject, Signal

from core.image_plane import CANVAS_SPACE, IMAGE_SPACE, Point2D

if TYPE_CHECKING:
    from core.cross_reference_coordinator import CrossReferenceCoordinator

STATE_IDLE = "idle"
STATE_DRAGGING = "dragging"


@dataclass(frozen=True)
class DragState:
    """Latest pointer position of an active drag on one view."""

    view: Any
    image_point: Point2D
    canvas_point: Point2D


class SyncedProbeTool(QObject):
    """
    Interaction adapter for the synced probe.

    Features:
    - IDLE/DRAGGING state machine fed by drag events
    - Redraw of all views on every drag event
    - Local marker and cross-reference pass on each render of the drag source
    """

    # Signals
    redraw_requested = Signal()  # Emitted whenever all views should repaint
    state_changed = Signal(str)  # Emitted with the new state ("idle" or "dragging")

    def __init__(
        self,
        coordinator: 'CrossReferenceCoordinator',
        view_registry: Any,
        draw_marker: Callable[[Any, Any, Point2D, Any], None],
        redraw_all: Optional[Callable[[], None]] = None,
    ):
        """
        Initialize the synced probe tool.

        Args:
            coordinator: CrossReferenceCoordinator run for each source render
            view_registry: Provides image_size(view) for the source bounds check
            draw_marker: draw_marker(render_context, view, point, style) for the local marker
            redraw_all: Optional callable that repaints every view
        """
        super().__init__()
        self.coordinator = coordinator
        self.view_registry = view_registry
        self.draw_marker = draw_marker
        self.redraw_all = redraw_all
        self.enabled = True
        self._state = STATE_IDLE
        self._drag_state: Optional[DragState] = None

    @property
    def state(self) -> str:
        return self._state

    @property
    def drag_state(self) -> Optional[DragState]:
        return self._drag_state

    def set_enabled(self, enabled: bool) -> None:
        """
        Enable or disable the tool.

        Disabling ends any drag and drops pending cross-reference markers.
        """
        self.enabled = enabled
        if not enabled:
            was_dragging = self._drag_state is not None
            self._drag_state = None
            self._set_state(STATE_IDLE)
            self.coordinator.cancel_all()
            if was_dragging:
                self.request_redraw()

    def on_drag_start(self, view: Any, image_point: Point2D, canvas_point: Point2D) -> None:
        self._update_drag(view, image_point, canvas_point)

    def on_drag_move(self, view: Any, image_point: Point2D, canvas_point: Point2D) -> None:
        self._update_drag(view, image_point, canvas_point)

    def on_drag_end(self, view: Any = None) -> None:
        """
        End the drag; the final redraw removes the markers.

        Pending target markers are dropped, and slices still loading for this
        drag switch without drawing one.
        """
        if not self.enabled or self._drag_state is None:
            return
        self._drag_state = None
        self._set_state(STATE_IDLE)
        self.coordinator.cancel_markers()
        self.request_redraw()

    def request_redraw(self) -> None:
        self.redraw_requested.emit()
        if self.redraw_all is not None:
            self.redraw_all()

    def render_tool_data(self, view: Any, render_context: Any) -> None:
        """
        Per-render hook installed on every view.

        Acts only on the drag source while a drag is active: draws the local
        marker and cross-references the point. Points outside the source
        image are ignored.

        Args:
            view: View that just rendered
            render_context: Drawing context of that render (e.g. QPainter)
        """
        drag = self._drag_state
        if not self.enabled or drag is None or drag.view is not view:
            return

        size = self.view_registry.image_size(view)
        if size is None:
            return
        rows, columns = size
        x = round(drag.image_point.x)
        y = round(drag.image_point.y)
        if x < 0 or y < 0 or x >= columns or y >= rows:
            return

        self.draw_marker(render_context, view, drag.canvas_point, self.coordinator.marker_style())
        self.coordinator.on_point_selected(view, drag.image_point)

    def _update_drag(self, view: Any, image_point: Point2D, canvas_point: Point2D) -> None:
        if not self.enabled:
            return
        self._drag_state = DragState(
            view,
            image_point.require_space(IMAGE_SPACE),
            canvas_point.require_space(CANVAS_SPACE),
        )
        self._set_state(STATE_DRAGGING)
        self.request_redraw()

    def _set_state(self, state: str) -> None:
        if state != self._state:
            self._state = state
            self.state_changed.emit(state)
