"""
Slice View

Widget that shows the current slice of one stack, forwards left-button drags
to the synced probe tool, and runs render listeners with the active painter
after every paint.

Inputs:
    - LoadedSlice objects to display
    - Mouse events
    - Render listeners (probe tool hook, one-shot probe markers)

Outputs:
    - Painted slice with overlays
    - image_rendered signal after each paint

Requirements:
    - PySide6 for widget, painting and events
    - Pillow images from core.slice_loader
"""

import traceback
from typing import TYPE_CHECKING, Callable, List, Optional, Tuple

from PySide6.QtCore import QPointF, QRectF, Qt, Signal
from PySide6.QtGui import QColor, QImage, QMouseEvent, QPainter, QPaintEvent, QPixmap
from PySide6.QtWidgets import QSizePolicy, QWidget

from core.image_plane import CANVAS_SPACE, IMAGE_SPACE, Point2D

if TYPE_CHECKING:
    from core.slice_loader import LoadedSlice
    from tools.synced_probe_tool import SyncedProbeTool


def pil_to_qpixmap(image) -> QPixmap:
    """Convert an 'L' or 'RGB' Pillow image to a QPixmap that owns its data."""
    if image.mode not in ('L', 'RGB'):
        image = image.convert('RGB')

    # Keep the bytes alive until the QImage copy below owns the pixels
    image_bytes = image.tobytes()
    if image.mode == 'L':
        qimage = QImage(image_bytes, image.width, image.height, image.width,
                        QImage.Format.Format_Grayscale8)
    else:
        qimage = QImage(image_bytes, image.width, image.height, image.width * 3,
                        QImage.Format.Format_RGB888)
    return QPixmap.fromImage(qimage.copy())


class SliceView(QWidget):
    """
    Displays one slice of a stack, aspect-fit to the widget.

    Features:
    - Canvas <-> image coordinate conversion
    - Left-button drag forwarded to the synced probe tool
    - Render listeners called with the QPainter after the slice is painted
    """

    # Signals
    image_rendered = Signal(object)  # Emitted after each paint (this view)

    def __init__(self, title: str = "", parent: Optional[QWidget] = None):
        super().__init__(parent)
        self.title = title
        self.loaded_slice: Optional['LoadedSlice'] = None
        self.probe_tool: Optional['SyncedProbeTool'] = None
        self._pixmap: Optional[QPixmap] = None
        self._render_listeners: List[Callable[[QPainter], None]] = []
        self._dragging = False

        self.setMinimumSize(128, 128)
        self.setSizePolicy(QSizePolicy.Policy.Expanding, QSizePolicy.Policy.Expanding)
        self.setMouseTracking(False)

    def __repr__(self) -> str:
        return f"SliceView({self.title!r})"

    # --- display ---

    @property
    def current_image_id(self) -> Optional[str]:
        if self.loaded_slice is None:
            return None
        return self.loaded_slice.image_id

    def display_slice(self, loaded_slice: 'LoadedSlice') -> None:
        """Show a loaded slice and schedule a repaint."""
        self.loaded_slice = loaded_slice
        self._pixmap = pil_to_qpixmap(loaded_slice.display_image)
        self.update()

    def image_size(self) -> Optional[Tuple[int, int]]:
        """(rows, columns) of the displayed slice, or None."""
        if self.loaded_slice is None:
            return None
        return (self.loaded_slice.rows, self.loaded_slice.columns)

    def image_rect(self) -> Optional[QRectF]:
        """Widget rectangle the slice is painted into (aspect-fit, centered)."""
        size = self.image_size()
        if size is None or self.width() <= 0 or self.height() <= 0:
            return None
        rows, columns = size
        scale = min(self.width() / columns, self.height() / rows)
        width = columns * scale
        height = rows * scale
        return QRectF((self.width() - width) / 2.0, (self.height() - height) / 2.0, width, height)

    def image_to_canvas(self, point: Point2D) -> Optional[Point2D]:
        point.require_space(IMAGE_SPACE)
        rect = self.image_rect()
        if rect is None:
            return None
        scale = rect.width() / self.loaded_slice.columns
        return Point2D(rect.left() + point.x * scale, rect.top() + point.y * scale, CANVAS_SPACE)

    def canvas_to_image(self, point: Point2D) -> Optional[Point2D]:
        point.require_space(CANVAS_SPACE)
        rect = self.image_rect()
        if rect is None:
            return None
        scale = rect.width() / self.loaded_slice.columns
        return Point2D((point.x - rect.left()) / scale, (point.y - rect.top()) / scale, IMAGE_SPACE)

    # --- render listeners ---

    def add_render_listener(self, listener: Callable[[QPainter], None]) -> None:
        if listener not in self._render_listeners:
            self._render_listeners.append(listener)

    def remove_render_listener(self, listener: Callable[[QPainter], None]) -> None:
        if listener in self._render_listeners:
            self._render_listeners.remove(listener)

    def paintEvent(self, event: QPaintEvent) -> None:
        painter = QPainter(self)
        try:
            painter.fillRect(self.rect(), QColor(0, 0, 0))
            rect = self.image_rect()
            if self._pixmap is not None and rect is not None:
                painter.setRenderHint(QPainter.RenderHint.SmoothPixmapTransform, False)
                painter.drawPixmap(rect, self._pixmap, QRectF(self._pixmap.rect()))
            if self.title:
                painter.setPen(QColor(255, 255, 0))
                painter.drawText(QPointF(6, 16), self.title)

            # Listeners may add or remove listeners while running
            for listener in list(self._render_listeners):
                try:
                    listener(painter)
                except Exception as e:
                    print(f"Error in render listener of {self!r}: {e}")
                    traceback.print_exc()
        finally:
            painter.end()
        self.image_rendered.emit(self)

    # --- probe interaction ---

    def set_probe_tool(self, tool: Optional['SyncedProbeTool']) -> None:
        self.probe_tool = tool

    def _event_points(self, event: QMouseEvent) -> Optional[Tuple[Point2D, Point2D]]:
        pos = event.position()
        canvas_point = Point2D(pos.x(), pos.y(), CANVAS_SPACE)
        image_point = self.canvas_to_image(canvas_point)
        if image_point is None:
            return None
        return image_point, canvas_point

    def mousePressEvent(self, event: QMouseEvent) -> None:
        if event.button() == Qt.MouseButton.LeftButton and self.probe_tool is not None:
            points = self._event_points(event)
            if points is not None:
                self._dragging = True
                self.probe_tool.on_drag_start(self, *points)
                event.accept()
                return
        super().mousePressEvent(event)

    def mouseMoveEvent(self, event: QMouseEvent) -> None:
        if self._dragging and self.probe_tool is not None:
            points = self._event_points(event)
            if points is not None:
                self.probe_tool.on_drag_move(self, *points)
            event.accept()
            return
        super().mouseMoveEvent(event)

    def mouseReleaseEvent(self, event: QMouseEvent) -> None:
        if self._dragging and event.button() == Qt.MouseButton.LeftButton:
            self._dragging = False
            if self.probe_tool is not None:
                self.probe_tool.on_drag_end(self)
            event.accept()
            return
        super().mouseReleaseEvent(event)
