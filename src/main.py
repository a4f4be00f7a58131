"""
Synced Probe - Main Application Entry Point

Opens a folder of DICOM series, shows up to four series side by side, and
enables the synced probe: dragging with the left mouse button on one view
marks the corresponding point on every other view, switching their slices
to the nearest plane.

Inputs:
    - Command line: path to a DICOM folder (a folder dialog opens if omitted)

Outputs:
    - Running viewer window

Requirements:
    - PySide6 for application framework
    - pydicom for DICOM file handling
    - Pillow for display images
    - numpy for geometry
"""

import sys
from pathlib import Path

# Add src directory to path
src_dir = Path(__file__).parent
sys.path.insert(0, str(src_dir))

from typing import List, Optional

from PySide6.QtWidgets import QApplication, QFileDialog, QGridLayout, QMainWindow, QMessageBox, QWidget

from core.cross_reference_coordinator import CrossReferenceCoordinator, LoadHandlers
from core.image_plane_provider import ImagePlaneProvider
from core.series_organizer import SeriesInfo, SeriesOrganizer, scan_dicom_headers
from core.slice_loader import SliceLoader
from gui.main_thread_dispatcher import MainThreadDispatcher
from gui.probe_marker_painter import draw_probe_marker
from gui.slice_view import SliceView
from gui.view_registry import ViewRegistry
from tools.synced_probe_tool import SyncedProbeTool
from utils.config_manager import ConfigManager

LAYOUT_SHAPES = {"1x2": (1, 2), "2x1": (2, 1), "2x2": (2, 2)}


class SyncedProbeApp:
    """
    Wires views, loader, coordinator and probe tool together.
    """

    def __init__(self, argv: List[str]):
        self.app = QApplication.instance() or QApplication(argv)
        self.config_manager = ConfigManager()

        self.plane_provider = ImagePlaneProvider()
        self.slice_loader = SliceLoader(self.config_manager)
        self.dispatcher = MainThreadDispatcher()
        self.view_registry = ViewRegistry()

        self.coordinator = CrossReferenceCoordinator(
            view_registry=self.view_registry,
            get_image_plane=self.plane_provider.get_image_plane,
            load_slice=self.slice_loader.load,
            draw_marker=draw_probe_marker,
            config_manager=self.config_manager,
            dispatch=self.dispatcher.dispatch,
            load_handlers=LoadHandlers(on_error=self._on_load_error),
        )
        self.probe_tool = SyncedProbeTool(
            self.coordinator,
            self.view_registry,
            draw_probe_marker,
            redraw_all=self.view_registry.redraw_all,
        )

        self.main_window = QMainWindow()
        self.main_window.setWindowTitle("Synced Probe")
        self.main_window.resize(1200, 800)
        self.app.aboutToQuit.connect(self.slice_loader.shutdown)

    def open_folder(self, folder: Optional[str]) -> bool:
        """Load all series in folder and lay them out; returns False if nothing was found."""
        if not folder:
            folder = QFileDialog.getExistingDirectory(None, "Select DICOM Folder")
            if not folder:
                return False

        headers = scan_dicom_headers(folder)
        organizer = SeriesOrganizer(
            self.plane_provider,
            self.slice_loader,
            prevent_cache=self.config_manager.get_prevent_cache_default(),
        )
        series = organizer.organize(headers)
        if not series:
            QMessageBox.warning(None, "Synced Probe", f"No DICOM images found in:\n{folder}")
            return False

        self._build_views(series)
        return True

    def _build_views(self, series: List[SeriesInfo]) -> None:
        rows, columns = LAYOUT_SHAPES[self.config_manager.get_multi_window_layout()]
        central = QWidget()
        grid = QGridLayout(central)
        grid.setContentsMargins(2, 2, 2, 2)
        grid.setSpacing(2)

        for position, info in enumerate(series[:rows * columns]):
            view = SliceView(info.description)
            view.set_probe_tool(self.probe_tool)
            view.add_render_listener(lambda painter, v=view: self.probe_tool.render_tool_data(v, painter))
            self.view_registry.add_view(view, info.stack)
            grid.addWidget(view, position // columns, position % columns)
            self._show_initial_slice(view, info)

        self.main_window.setCentralWidget(central)

    def _show_initial_slice(self, view: SliceView, info: SeriesInfo) -> None:
        image_id = info.stack.current_image_id
        future = self.slice_loader.load(image_id, cache=not info.stack.prevent_cache)

        def on_loaded(f, view=view, image_id=image_id):
            def apply():
                try:
                    view.display_slice(f.result())
                except Exception as e:
                    print(f"Error displaying initial slice {image_id}: {e}")
            self.dispatcher.dispatch(apply)

        future.add_done_callback(on_loaded)

    def _on_load_error(self, view, image_id: str, error: BaseException) -> None:
        self.main_window.statusBar().showMessage(f"Failed to load {image_id}: {error}", 5000)

    def run(self, folder: Optional[str]) -> int:
        if not self.open_folder(folder):
            return 1
        self.main_window.show()
        return self.app.exec()


def exception_hook(exctype, value, tb):
    """Global exception handler to catch unhandled exceptions."""
    import traceback
    error_msg = ''.join(traceback.format_exception(exctype, value, tb))
    print(f"Unhandled exception:\n{error_msg}")


def main():
    """Main entry point."""
    sys.excepthook = exception_hook

    folder = sys.argv[1] if len(sys.argv) > 1 else None
    try:
        app = SyncedProbeApp(sys.argv)
        return app.run(folder)
    except Exception as e:
        print(f"Fatal error: {e}")
        import traceback
        traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
