"""
Unit tests for the synced probe tool (tools.synced_probe_tool).

The coordinator and view registry are fakes, except in TestToolWithCoordinator,
which drives a real coordinator over fake_views doubles. The tool itself is a
QObject, so these tests run with a QApplication (offscreen).
Runnable with pytest or unittest.
"""

import unittest
import sys
import os

import numpy as np
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

import fake_views
from core.cross_reference_coordinator import CrossReferenceCoordinator, MarkerStyle
from core.image_plane import CANVAS_SPACE, IMAGE_SPACE, ImagePlane, Point2D
from core.slice_stack import SliceStack
from tools.synced_probe_tool import STATE_DRAGGING, STATE_IDLE, SyncedProbeTool


class FakeCoordinator:
    def __init__(self):
        self.selected = []
        self.cancelled = 0
        self.markers_cancelled = 0

    def marker_style(self):
        return MarkerStyle(radius=3)

    def on_point_selected(self, view, image_point):
        self.selected.append((view, image_point))

    def cancel_all(self):
        self.cancelled += 1

    def cancel_markers(self):
        self.markers_cancelled += 1


class FakeRegistry:
    def __init__(self, sizes):
        self.sizes = sizes

    def image_size(self, view):
        return self.sizes.get(view)


def _image(x, y):
    return Point2D(x, y, IMAGE_SPACE)


def _canvas(x, y):
    return Point2D(x, y, CANVAS_SPACE)


@pytest.mark.qt
@pytest.mark.usefixtures("qapp")
class TestSyncedProbeTool(unittest.TestCase):
    """Tests for SyncedProbeTool."""

    def setUp(self):
        self.view_a = object()
        self.view_b = object()
        self.coordinator = FakeCoordinator()
        self.registry = FakeRegistry({self.view_a: (10, 20), self.view_b: (10, 20)})
        self.draws = []
        self.redraws = 0
        self.tool = SyncedProbeTool(
            self.coordinator,
            self.registry,
            lambda ctx, view, point, style: self.draws.append((ctx, view, point, style)),
            redraw_all=self._count_redraw,
        )
        self.states = []
        self.tool.state_changed.connect(self.states.append)

    def _count_redraw(self):
        self.redraws += 1

    def test_drag_lifecycle(self):
        self.assertEqual(self.tool.state, STATE_IDLE)

        self.tool.on_drag_start(self.view_a, _image(1, 1), _canvas(10, 10))
        self.assertEqual(self.tool.state, STATE_DRAGGING)
        self.tool.on_drag_move(self.view_a, _image(2, 2), _canvas(20, 20))
        self.assertEqual(self.tool.drag_state.image_point, _image(2, 2))
        self.tool.on_drag_end(self.view_a)

        self.assertEqual(self.tool.state, STATE_IDLE)
        self.assertIsNone(self.tool.drag_state)
        self.assertEqual(self.redraws, 3)
        self.assertEqual(self.states, [STATE_DRAGGING, STATE_IDLE])
        self.assertEqual(self.coordinator.markers_cancelled, 1)

    def test_drag_end_while_idle_does_nothing(self):
        self.tool.on_drag_end(self.view_a)
        self.assertEqual(self.coordinator.markers_cancelled, 0)
        self.assertEqual(self.redraws, 0)
        self.assertEqual(self.states, [])

    def test_redraw_signal_emitted(self):
        emitted = []
        self.tool.redraw_requested.connect(lambda: emitted.append(True))
        self.tool.on_drag_start(self.view_a, _image(1, 1), _canvas(10, 10))
        self.assertEqual(emitted, [True])

    def test_render_of_source_draws_and_cross_references(self):
        self.tool.on_drag_start(self.view_a, _image(4, 5), _canvas(40, 50))

        self.tool.render_tool_data(self.view_a, "painter")

        self.assertEqual(len(self.draws), 1)
        ctx, view, point, style = self.draws[0]
        self.assertEqual((ctx, view), ("painter", self.view_a))
        self.assertEqual(point, _canvas(40, 50))
        self.assertEqual(style.radius, 3)
        self.assertEqual(self.coordinator.selected, [(self.view_a, _image(4, 5))])

    def test_render_of_other_view_does_nothing(self):
        self.tool.on_drag_start(self.view_a, _image(4, 5), _canvas(40, 50))
        self.tool.render_tool_data(self.view_b, "painter")
        self.assertEqual(self.draws, [])
        self.assertEqual(self.coordinator.selected, [])

    def test_render_while_idle_does_nothing(self):
        self.tool.render_tool_data(self.view_a, "painter")
        self.assertEqual(self.draws, [])

    def test_out_of_bounds_point_ignored(self):
        # Image is 10 rows x 20 columns; bounds use rounded coordinates
        for point in (_image(19.6, 0), _image(0, 9.5), _image(-0.6, 3)):
            self.tool.on_drag_move(self.view_a, point, _canvas(0, 0))
            self.tool.render_tool_data(self.view_a, "painter")
        self.assertEqual(self.draws, [])
        self.assertEqual(self.coordinator.selected, [])

        self.tool.on_drag_move(self.view_a, _image(19.4, 9.4), _canvas(0, 0))
        self.tool.render_tool_data(self.view_a, "painter")
        self.assertEqual(len(self.coordinator.selected), 1)

    def test_view_without_image_ignored(self):
        lone = object()
        self.tool.on_drag_start(lone, _image(1, 1), _canvas(1, 1))
        self.tool.render_tool_data(lone, "painter")
        self.assertEqual(self.coordinator.selected, [])

    def test_drag_after_end_stops_cross_referencing(self):
        self.tool.on_drag_start(self.view_a, _image(1, 1), _canvas(1, 1))
        self.tool.on_drag_end(self.view_a)
        self.tool.render_tool_data(self.view_a, "painter")
        self.assertEqual(self.coordinator.selected, [])

    def test_mixed_spaces_rejected(self):
        with self.assertRaises(ValueError):
            self.tool.on_drag_start(self.view_a, _canvas(1, 1), _canvas(1, 1))

    def test_disable_cancels_pending_markers(self):
        self.tool.on_drag_start(self.view_a, _image(1, 1), _canvas(1, 1))
        self.tool.set_enabled(False)

        self.assertEqual(self.coordinator.cancelled, 1)
        self.assertEqual(self.tool.state, STATE_IDLE)
        self.assertEqual(self.redraws, 2)

        self.tool.on_drag_start(self.view_a, _image(1, 1), _canvas(1, 1))
        self.assertIsNone(self.tool.drag_state)


@pytest.mark.qt
@pytest.mark.usefixtures("qapp")
class TestToolWithCoordinator(unittest.TestCase):
    """The tool driving a real CrossReferenceCoordinator over fake views."""

    def setUp(self):
        self.planes = {"src": ImagePlane(np.array([0.0, 0.0, 20.0]), np.array([1.0, 0.0, 0.0]),
                                         np.array([0.0, 0.0, -1.0]), rows=64, columns=64)}
        self.registry = fake_views.FakeRegistry()
        self.loader = fake_views.ManualLoader()
        self.marker_draws = []

        self.source = fake_views.FakeView("source", "src")
        self.registry.add(self.source, SliceStack(["src"]))
        ids = [f"t1-{i}" for i in range(3)]
        for i, image_id in enumerate(ids):
            self.planes[image_id] = ImagePlane(np.array([0.0, 0.0, 5.0 * i]), np.array([1.0, 0.0, 0.0]),
                                               np.array([0.0, 1.0, 0.0]), rows=64, columns=64)
        self.target = fake_views.FakeView("t1", ids[0])
        self.registry.add(self.target, SliceStack(ids))

        draw = lambda ctx, view, point, style: self.marker_draws.append(view)
        self.coordinator = CrossReferenceCoordinator(
            view_registry=self.registry,
            get_image_plane=self.planes.get,
            load_slice=self.loader.load,
            draw_marker=draw,
        )
        self.tool = SyncedProbeTool(self.coordinator, self.registry, draw)

    def test_load_finishing_after_drag_end_draws_no_marker(self):
        # Source point maps to z = 4, nearest target slice is index 1
        self.tool.on_drag_start(self.source, _image(2, 16), _canvas(2, 16))
        self.tool.render_tool_data(self.source, "painter")
        self.assertEqual(self.marker_draws, [self.source])
        self.assertEqual([r[0] for r in self.loader.requests], ["t1-1"])

        self.tool.on_drag_end(self.source)
        self.registry.render(self.target)
        self.loader.complete("t1-1")
        self.registry.render(self.target)

        self.assertEqual(self.marker_draws, [self.source])
        self.assertEqual(self.target.listeners, [])
        self.assertEqual(self.registry.stacks[self.target].current_index, 1)
        self.assertEqual(self.target.displayed, ["t1-1"])

    def test_load_finishing_during_drag_draws_marker(self):
        self.tool.on_drag_start(self.source, _image(2, 16), _canvas(2, 16))
        self.tool.render_tool_data(self.source, "painter")
        self.loader.complete("t1-1")
        self.registry.render(self.target)

        self.assertEqual(self.marker_draws, [self.source, self.target])


if __name__ == "__main__":
    unittest.main()
