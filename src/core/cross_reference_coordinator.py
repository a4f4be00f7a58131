"""
Cross-Reference Coordinator

Given a point picked on a source view, finds for every other open view the
slice closest to that point, switches the view to it (loading the slice if
needed), and draws a one-shot probe marker at the projected location on the
view's next render.

Inputs:
    - on_point_selected(source_view, image_point) calls from the synced probe tool
    - View registry (enabled views, stacks, display, render listeners)
    - Metadata lookup (image id -> ImagePlane)
    - Slice loader returning concurrent.futures.Future objects

Outputs:
    - Stack index switches and display calls on target views
    - One marker registration per view, drawn once on the next render
    - CrossReferencePass records describing what happened per view

Requirements:
    - numpy (via core.plane_geometry)
    - concurrent.futures Future protocol from the loader
    - utils.debug_log for optional tracing
"""

import traceback
from concurrent.futures import Future
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Tuple

import numpy as np

from core.cross_reference_errors import (
    CrossReferenceError,
    LoadFailure,
    MissingSourcePlane,
    MissingStackMetadata,
    NoUsableSlice,
)
from core.image_plane import IMAGE_SPACE, ImagePlane, Point2D
from core.plane_geometry import image_point_to_patient_point, project_patient_point_to_image_plane
from core.slice_locator import SliceLocator
from utils.debug_log import debug_log, probe_debug

if TYPE_CHECKING:
    from utils.config_manager import ConfigManager

OUTCOME_MARKER = "marker"
OUTCOME_LOADING = "loading"
OUTCOME_SKIPPED = "skipped"
OUTCOME_FAILED = "failed"
OUTCOME_SUPERSEDED = "superseded"


@dataclass(frozen=True)
class MarkerStyle:
    """Appearance of the probe marker."""

    radius: int = 2
    color: Tuple[int, int, int] = (0, 255, 0)
    shadow_enabled: bool = True
    shadow_color: Tuple[int, int, int] = (0, 0, 0)
    shadow_offset: int = 1

    @classmethod
    def from_config(cls, config_manager: Optional['ConfigManager']) -> "MarkerStyle":
        if config_manager is None:
            return cls()
        return cls(
            radius=config_manager.get_probe_marker_radius(),
            color=config_manager.get_probe_marker_color(),
            shadow_enabled=config_manager.get_probe_shadow_enabled(),
            shadow_color=config_manager.get_probe_shadow_color(),
            shadow_offset=config_manager.get_probe_shadow_offset(),
        )


@dataclass
class LoadHandlers:
    """Optional hooks around slice loads (e.g. busy indicators on the view)."""

    on_start: Optional[Callable[[Any, str], None]] = None
    on_end: Optional[Callable[[Any, str], None]] = None
    on_error: Optional[Callable[[Any, str, BaseException], None]] = None


class MarkerRegistration:
    """Pending one-shot marker draw for a view."""

    def __init__(self, view: Any, point: Point2D, style: MarkerStyle):
        self.view = view
        self.point = point
        self.style = style
        self.listener: Optional[Callable[[Any], None]] = None


@dataclass
class CrossReferencePass:
    """Result of one on_point_selected call."""

    source_view: Any
    image_point: Point2D
    patient_point: Optional[np.ndarray] = None
    aborted: bool = False
    errors: List[CrossReferenceError] = field(default_factory=list)
    outcomes: Dict[Any, str] = field(default_factory=dict)

    def outcome(self, view: Any) -> Optional[str]:
        return self.outcomes.get(view)


class _PendingSwitch:
    """Slice switch in flight for one view; refreshed by later passes wanting the same slice."""

    def __init__(self, index: int, image_id: str, plane: ImagePlane, patient_point: np.ndarray,
                 style: MarkerStyle, result: CrossReferencePass):
        self.index = index
        self.image_id = image_id
        self.plane = plane
        self.patient_point = patient_point
        self.style = style
        self.result = result
        self.wants_marker = True


def _call_inline(fn: Callable[[], None]) -> None:
    fn()


class CrossReferenceCoordinator:
    """
    Synchronizes probe markers across views.

    Responsibilities:
    - Convert the picked point to patient space using the source plane
    - Locate the nearest slice of each target stack
    - Switch target views to that slice, asynchronously when it must be loaded
    - Keep at most one pending marker per view, replacing older ones

    Target views are processed independently: a missing stack, a stack
    without geometry or a failed load affects only that view.
    """

    def __init__(
        self,
        view_registry: Any,
        get_image_plane: Callable[[str], Optional[ImagePlane]],
        load_slice: Callable[..., Future],
        draw_marker: Callable[[Any, Any, Point2D, MarkerStyle], None],
        config_manager: Optional['ConfigManager'] = None,
        dispatch: Optional[Callable[[Callable[[], None]], None]] = None,
        load_handlers: Optional[LoadHandlers] = None,
    ):
        """
        Initialize the coordinator.

        Args:
            view_registry: Provides enabled_views(), current_image_id(view), stack_of(view),
                display(view, loaded_slice), add_render_listener(view, cb),
                remove_render_listener(view, cb) and request_render(view)
            get_image_plane: Metadata lookup for image ids
            load_slice: load_slice(image_id, cache=bool) -> Future of a loaded slice
            draw_marker: draw_marker(render_context, view, point, style)
            config_manager: Optional ConfigManager for the marker style
            dispatch: Runs load continuations on the event-loop thread (default: inline)
            load_handlers: Optional start/end/error hooks for loads
        """
        self.view_registry = view_registry
        self.get_image_plane = get_image_plane
        self.load_slice = load_slice
        self.draw_marker = draw_marker
        self.config_manager = config_manager
        self.dispatch = dispatch or _call_inline
        self.load_handlers = load_handlers or LoadHandlers()
        self.locator = SliceLocator(get_image_plane)

        self._markers: Dict[Any, MarkerRegistration] = {}
        self._pending_switches: Dict[Any, _PendingSwitch] = {}

    def marker_style(self) -> MarkerStyle:
        return MarkerStyle.from_config(self.config_manager)

    def pending_marker(self, view: Any) -> Optional[MarkerRegistration]:
        """Marker waiting for the view's next render, if any."""
        return self._markers.get(view)

    def has_pending_switch(self, view: Any) -> bool:
        return view in self._pending_switches

    def on_point_selected(self, source_view: Any, image_point: Point2D) -> CrossReferencePass:
        """
        Cross-reference an image point of the source view to all other views.

        Args:
            source_view: View the point was picked on
            image_point: Image-space point on the source view's current slice

        Returns:
            CrossReferencePass; outcomes of views still loading are updated
            when their loads complete
        """
        image_point.require_space(IMAGE_SPACE)
        result = CrossReferencePass(source_view, image_point)

        source_image_id = self.view_registry.current_image_id(source_view)
        source_plane = self.get_image_plane(source_image_id) if source_image_id is not None else None
        if source_plane is None:
            result.aborted = True
            self._report(result, MissingSourcePlane(source_image_id, source_view))
            return result

        patient_point = image_point_to_patient_point(image_point, source_plane)
        result.patient_point = patient_point
        style = self.marker_style()

        for target_view in list(self.view_registry.enabled_views()):
            if target_view is source_view:
                continue
            try:
                self._cross_reference_view(target_view, patient_point, style, result)
            except Exception as e:
                print(f"[CROSSREF] Error cross-referencing view {target_view!r}: {e}")
                traceback.print_exc()
                result.outcomes[target_view] = OUTCOME_FAILED

        return result

    def cancel_markers(self) -> None:
        """
        Drop every pending marker, including those of switches still loading.

        In-flight switches still complete and change the slice, but register
        no marker. Used when the drag ends.
        """
        for view in list(self._markers.keys()):
            self._cancel_marker(view)
        for view, pending in self._pending_switches.items():
            pending.wants_marker = False
            self._supersede(view, pending)

    def cancel_all(self) -> None:
        """Drop every pending marker and forget in-flight switches (their completions are ignored)."""
        for view in list(self._markers.keys()):
            self._cancel_marker(view)
        for view, pending in list(self._pending_switches.items()):
            pending.result.outcomes[view] = OUTCOME_SUPERSEDED
        self._pending_switches.clear()

    def _cross_reference_view(self, view: Any, patient_point: np.ndarray, style: MarkerStyle,
                              result: CrossReferencePass) -> None:
        if self.view_registry.current_image_id(view) is None:
            probe_debug(f"View {view!r} shows no image, skipping")
            result.outcomes[view] = OUTCOME_SKIPPED
            return

        stack = self.view_registry.stack_of(view)
        if stack is None:
            self._report(result, MissingStackMetadata(view))
            result.outcomes[view] = OUTCOME_SKIPPED
            return

        located = self.locator.locate(patient_point, stack)
        if located is None:
            self._report(result, NoUsableSlice(view))
            result.outcomes[view] = OUTCOME_SKIPPED
            return

        pending = self._pending_switches.get(view)

        if located.index == stack.current_index:
            # Already showing the best slice: only the marker moves
            if pending is not None:
                self._supersede(view, pending)
                del self._pending_switches[view]
            point = project_patient_point_to_image_plane(patient_point, located.plane)
            self._register_marker(view, point, style)
            result.outcomes[view] = OUTCOME_MARKER
            self.view_registry.request_render(view)
            return

        if pending is not None and pending.index == located.index and pending.image_id == located.image_id:
            # Same slice already loading: retarget its marker to the newest point
            if pending.result is not result:
                self._supersede(view, pending)
            pending.patient_point = patient_point
            pending.style = style
            pending.result = result
            pending.wants_marker = True
            result.outcomes[view] = OUTCOME_LOADING
            return

        if pending is not None:
            self._supersede(view, pending)
        self._cancel_marker(view)

        pending = _PendingSwitch(located.index, located.image_id, located.plane, patient_point, style, result)
        self._pending_switches[view] = pending
        result.outcomes[view] = OUTCOME_LOADING

        if self.load_handlers.on_start:
            self.load_handlers.on_start(view, located.image_id)

        debug_log("cross_reference_coordinator:_cross_reference_view", "slice load requested",
                  {"view": view, "index": located.index, "image_id": located.image_id,
                   "prevent_cache": stack.prevent_cache})
        future = self.load_slice(located.image_id, cache=not stack.prevent_cache)
        future.add_done_callback(
            lambda f, v=view, p=pending: self.dispatch(lambda: self._on_slice_loaded(v, p, f))
        )

    def _on_slice_loaded(self, view: Any, pending: _PendingSwitch, future: Future) -> None:
        if self._pending_switches.get(view) is not pending:
            probe_debug(f"Discarding superseded load of {pending.image_id} for view {view!r}")
            self._finish_discarded_load(view, pending, future)
            return
        del self._pending_switches[view]
        result = pending.result

        try:
            if future.cancelled():
                raise RuntimeError("load cancelled")
            loaded_slice = future.result()
        except Exception as e:
            self._report(result, LoadFailure(pending.image_id, view, e))
            result.outcomes[view] = OUTCOME_FAILED
            if self.load_handlers.on_error:
                self.load_handlers.on_error(view, pending.image_id, e)
            return

        try:
            stack = self.view_registry.stack_of(view)
            if stack is None:
                raise MissingStackMetadata(view)
            stack.switch_to(pending.index, pending.image_id)
            self.view_registry.display(view, loaded_slice)
            if self.load_handlers.on_end:
                self.load_handlers.on_end(view, pending.image_id)

            if not pending.wants_marker:
                return
            point = project_patient_point_to_image_plane(pending.patient_point, pending.plane)
            self._register_marker(view, point, pending.style)
            result.outcomes[view] = OUTCOME_MARKER
        except Exception as e:
            print(f"[CROSSREF] Error displaying {pending.image_id} on view {view!r}: {e}")
            traceback.print_exc()
            result.outcomes[view] = OUTCOME_FAILED

    def _finish_discarded_load(self, view: Any, pending: _PendingSwitch, future: Future) -> None:
        """Close the start hook of a load whose result is not applied."""
        error = None if future.cancelled() else future.exception()
        if error is not None:
            if self.load_handlers.on_error:
                self.load_handlers.on_error(view, pending.image_id, error)
        elif self.load_handlers.on_end:
            self.load_handlers.on_end(view, pending.image_id)

    def _supersede(self, view: Any, pending: _PendingSwitch) -> None:
        if pending.result.outcomes.get(view) == OUTCOME_LOADING:
            pending.result.outcomes[view] = OUTCOME_SUPERSEDED

    def _register_marker(self, view: Any, point: Point2D, style: MarkerStyle) -> None:
        self._cancel_marker(view)
        registration = MarkerRegistration(view, point, style)

        def on_rendered(render_context, registration=registration):
            self._fire_marker(registration, render_context)

        registration.listener = on_rendered
        self._markers[view] = registration
        self.view_registry.add_render_listener(view, on_rendered)

    def _fire_marker(self, registration: MarkerRegistration, render_context: Any) -> None:
        view = registration.view
        self.view_registry.remove_render_listener(view, registration.listener)
        if self._markers.get(view) is not registration:
            return
        del self._markers[view]
        self.draw_marker(render_context, view, registration.point, registration.style)

    def _cancel_marker(self, view: Any) -> None:
        registration = self._markers.pop(view, None)
        if registration is not None:
            self.view_registry.remove_render_listener(view, registration.listener)

    def _report(self, result: CrossReferencePass, error: CrossReferenceError) -> None:
        result.errors.append(error)
        print(f"[CROSSREF] Warning: {error}")
        debug_log("cross_reference_coordinator", type(error).__name__,
                  {"message": str(error), "view": error.view})
