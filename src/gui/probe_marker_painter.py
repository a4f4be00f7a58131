"""
Probe Marker Painter

Draws the probe marker (a small shadowed circle) with a QPainter.

Inputs:
    - QPainter of the view being rendered
    - Point in image or canvas space
    - MarkerStyle

Outputs:
    - Marker painted on the view

Requirements:
    - PySide6 for painting
"""

from PySide6.QtCore import QPointF, Qt
from PySide6.QtGui import QColor, QPainter, QPen

from core.cross_reference_coordinator import MarkerStyle
from core.image_plane import IMAGE_SPACE, Point2D


def draw_probe_marker(painter: QPainter, view, point: Point2D, style: MarkerStyle) -> None:
    """
    Draw the probe marker.

    Image-space points are converted through view.image_to_canvas(); canvas
    points are drawn as given. Nothing is drawn if the view shows no image.
    """
    if point.space == IMAGE_SPACE:
        point = view.image_to_canvas(point)
        if point is None:
            return

    center = QPointF(point.x, point.y)
    radius = float(style.radius)

    painter.save()
    try:
        painter.setRenderHint(QPainter.RenderHint.Antialiasing, True)
        painter.setBrush(Qt.BrushStyle.NoBrush)
        if style.shadow_enabled and style.shadow_offset > 0:
            shadow_pen = QPen(QColor(*style.shadow_color), 1)
            painter.setPen(shadow_pen)
            offset = float(style.shadow_offset)
            painter.drawEllipse(center + QPointF(offset, offset), radius, radius)
        painter.setPen(QPen(QColor(*style.color), 1))
        painter.drawEllipse(center, radius, radius)
    finally:
        painter.restore()
