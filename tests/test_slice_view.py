"""
Tests for the Qt view layer: SliceView, ViewRegistry, draw_probe_marker and
MainThreadDispatcher, plus an end-to-end probe pass through real widgets.

Requires PySide6; runs on the offscreen platform (see conftest.py).
Runnable with pytest.
"""

import unittest
import sys
import os

import numpy as np
import pytest
from PIL import Image

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from PySide6.QtCore import QCoreApplication, QPoint, Qt
from PySide6.QtGui import QColor, QImage, QPainter
from PySide6.QtTest import QTest

from core.cross_reference_coordinator import CrossReferenceCoordinator, MarkerStyle
from core.image_plane import CANVAS_SPACE, IMAGE_SPACE, ImagePlane, Point2D
from core.slice_loader import LoadedSlice
from core.slice_stack import SliceStack
from gui.main_thread_dispatcher import MainThreadDispatcher
from gui.probe_marker_painter import draw_probe_marker
from gui.slice_view import SliceView, pil_to_qpixmap
from gui.view_registry import ViewRegistry
from tools.synced_probe_tool import SyncedProbeTool


def _loaded(image_id, rows=2, columns=4):
    image = Image.fromarray(np.full((rows, columns), 128, dtype=np.uint8))
    return LoadedSlice(image_id, None, np.zeros((rows, columns)), image)


class RecordingTool:
    def __init__(self):
        self.events = []

    def on_drag_start(self, view, image_point, canvas_point):
        self.events.append(("start", image_point, canvas_point))

    def on_drag_move(self, view, image_point, canvas_point):
        self.events.append(("move", image_point, canvas_point))

    def on_drag_end(self, view=None):
        self.events.append(("end",))


@pytest.mark.qt
@pytest.mark.usefixtures("qapp")
class TestSliceView(unittest.TestCase):
    """Tests for SliceView."""

    def setUp(self):
        self.view = SliceView("test")
        self.view.resize(400, 200)

    def tearDown(self):
        self.view.deleteLater()

    def test_empty_view(self):
        self.assertIsNone(self.view.current_image_id)
        self.assertIsNone(self.view.image_size())
        self.assertIsNone(self.view.image_to_canvas(Point2D(0.0, 0.0)))

    def test_display_slice(self):
        self.view.display_slice(_loaded("s1"))
        self.assertEqual(self.view.current_image_id, "s1")
        self.assertEqual(self.view.image_size(), (2, 4))

    def test_coordinate_conversion(self):
        self.view.display_slice(_loaded("s1"))
        canvas = self.view.image_to_canvas(Point2D(1.0, 1.0, IMAGE_SPACE))
        self.assertEqual(canvas.space, CANVAS_SPACE)
        self.assertAlmostEqual(canvas.x, 100.0)
        self.assertAlmostEqual(canvas.y, 100.0)
        back = self.view.canvas_to_image(canvas)
        self.assertAlmostEqual(back.x, 1.0)
        self.assertAlmostEqual(back.y, 1.0)

    def test_aspect_fit_centers_image(self):
        self.view.resize(600, 200)
        self.view.display_slice(_loaded("s1"))
        rect = self.view.image_rect()
        self.assertAlmostEqual(rect.left(), 100.0)
        self.assertAlmostEqual(rect.width(), 400.0)

    def test_render_listeners_receive_painter(self):
        self.view.display_slice(_loaded("s1"))
        seen = []
        self.view.add_render_listener(lambda painter: seen.append(isinstance(painter, QPainter)))
        self.view.grab()
        self.assertEqual(seen, [True])

    def test_image_rendered_emitted_after_listeners(self):
        order = []
        self.view.add_render_listener(lambda painter: order.append("listener"))
        self.view.image_rendered.connect(lambda view: order.append(view))
        self.view.grab()
        self.assertEqual(order, ["listener", self.view])

    def test_listener_may_remove_itself(self):
        calls = []

        def once(painter):
            calls.append(1)
            self.view.remove_render_listener(once)

        self.view.add_render_listener(once)
        self.view.grab()
        self.view.grab()
        self.assertEqual(calls, [1])

    def test_failing_listener_does_not_block_others(self):
        seen = []

        def broken(painter):
            raise RuntimeError("listener failure")

        self.view.add_render_listener(broken)
        self.view.add_render_listener(lambda painter: seen.append(1))
        self.view.grab()
        self.assertEqual(seen, [1])

    def test_left_drag_forwarded_to_tool(self):
        tool = RecordingTool()
        self.view.set_probe_tool(tool)
        self.view.show()
        self.view.display_slice(_loaded("s1"))

        QTest.mousePress(self.view, Qt.MouseButton.LeftButton, Qt.KeyboardModifier.NoModifier, QPoint(100, 100))
        QTest.mouseRelease(self.view, Qt.MouseButton.LeftButton, Qt.KeyboardModifier.NoModifier, QPoint(100, 100))

        self.assertEqual([event[0] for event in tool.events], ["start", "end"])
        _, image_point, canvas_point = tool.events[0]
        self.assertEqual(image_point.space, IMAGE_SPACE)
        self.assertAlmostEqual(image_point.x, 1.0)
        self.assertEqual(canvas_point, Point2D(100.0, 100.0, CANVAS_SPACE))

    def test_press_without_image_ignored(self):
        tool = RecordingTool()
        self.view.set_probe_tool(tool)
        self.view.show()
        QTest.mousePress(self.view, Qt.MouseButton.LeftButton, Qt.KeyboardModifier.NoModifier, QPoint(100, 100))
        self.assertEqual(tool.events, [])

    def test_pil_to_qpixmap(self):
        pixmap = pil_to_qpixmap(Image.new("RGB", (5, 3), (10, 20, 30)))
        self.assertEqual((pixmap.width(), pixmap.height()), (5, 3))


@pytest.mark.qt
@pytest.mark.usefixtures("qapp")
class TestProbeMarkerPainter(unittest.TestCase):
    """Tests for draw_probe_marker."""

    def _paint(self, point, style, view=None):
        image = QImage(20, 20, QImage.Format.Format_RGB32)
        image.fill(QColor(0, 0, 0))
        painter = QPainter(image)
        try:
            draw_probe_marker(painter, view, point, style)
        finally:
            painter.end()
        return image

    def _colored_pixels(self, image):
        return [(x, y) for x in range(20) for y in range(20)
                if image.pixelColor(x, y) != QColor(0, 0, 0)]

    def test_canvas_point_drawn_at_position(self):
        image = self._paint(Point2D(10.0, 10.0, CANVAS_SPACE), MarkerStyle(radius=3, shadow_enabled=False))
        pixels = self._colored_pixels(image)
        self.assertTrue(pixels)
        self.assertTrue(all(6 <= x <= 14 and 6 <= y <= 14 for x, y in pixels))

    def test_image_point_without_image_draws_nothing(self):
        view = SliceView()
        image = self._paint(Point2D(1.0, 1.0, IMAGE_SPACE), MarkerStyle(), view)
        self.assertEqual(self._colored_pixels(image), [])


@pytest.mark.qt
@pytest.mark.usefixtures("qapp")
class TestViewRegistry(unittest.TestCase):
    """Tests for ViewRegistry."""

    def test_enabled_views_and_stacks(self):
        registry = ViewRegistry()
        first, second = SliceView("a"), SliceView("b")
        stack = SliceStack(["x"])
        registry.add_view(first, stack)
        registry.add_view(second)
        second.setEnabled(False)

        self.assertEqual(registry.enabled_views(), [first])
        self.assertIs(registry.stack_of(first), stack)
        self.assertIsNone(registry.stack_of(second))

        registry.remove_view(first)
        self.assertIsNone(registry.stack_of(first))
        self.assertEqual(registry.enabled_views(), [])

    def test_views_changed_signal(self):
        registry = ViewRegistry()
        changes = []
        registry.views_changed.connect(lambda: changes.append(len(registry.enabled_views())))
        view = SliceView("a")

        registry.add_view(view, SliceStack(["x"]))
        registry.remove_view(view)
        registry.remove_view(view)

        self.assertEqual(changes, [1, 0])


@pytest.mark.qt
@pytest.mark.usefixtures("qapp")
class TestMainThreadDispatcher(unittest.TestCase):
    """Tests for MainThreadDispatcher."""

    def test_dispatch_runs_on_event_loop(self):
        dispatcher = MainThreadDispatcher()
        calls = []
        dispatcher.dispatch(lambda: calls.append(1))
        self.assertEqual(calls, [])
        QCoreApplication.processEvents()
        self.assertEqual(calls, [1])


@pytest.mark.qt
@pytest.mark.usefixtures("qapp")
class TestProbeEndToEnd(unittest.TestCase):
    """Drag on one real view, marker appears on another after its repaint."""

    def test_marker_drawn_on_target_render(self):
        planes = {
            "src": ImagePlane(np.array([0.0, 0.0, 20.0]), np.array([1.0, 0.0, 0.0]),
                              np.array([0.0, 0.0, -1.0])),
            "t": ImagePlane(np.array([0.0, 0.0, 4.0]), np.array([1.0, 0.0, 0.0]),
                            np.array([0.0, 1.0, 0.0])),
        }
        registry = ViewRegistry()
        source, target = SliceView("source"), SliceView("target")
        for view in (source, target):
            view.resize(128, 128)
        source.display_slice(_loaded("src", rows=32, columns=32))
        target.display_slice(_loaded("t", rows=32, columns=32))
        registry.add_view(source, SliceStack(["src"]))
        registry.add_view(target, SliceStack(["t"]))

        drawn = []

        def draw(painter, view, point, style):
            drawn.append((view, point))
            draw_probe_marker(painter, view, point, style)

        coordinator = CrossReferenceCoordinator(registry, planes.get, lambda image_id, cache=True: None, draw)
        tool = SyncedProbeTool(coordinator, registry, draw, redraw_all=registry.redraw_all)
        for view in (source, target):
            view.set_probe_tool(tool)
            view.add_render_listener(lambda painter, v=view: tool.render_tool_data(v, painter))

        tool.on_drag_start(source, Point2D(3.0, 16.0, IMAGE_SPACE), Point2D(12.0, 64.0, CANVAS_SPACE))
        source.grab()
        target.grab()
        target.grab()

        self.assertEqual([view for view, _ in drawn], [source, target])
        self.assertAlmostEqual(drawn[1][1].x, 3.0)
        self.assertAlmostEqual(drawn[1][1].y, 0.0)


if __name__ == "__main__":
    unittest.main()
