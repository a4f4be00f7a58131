"""
Main Thread Dispatcher

Runs callables on the thread that owns the dispatcher (the GUI thread).
Slice loads complete on worker threads; their continuations are posted here
so stacks, views and markers are only touched from the event loop.

Requirements:
    - PySide6 queued signal connections
"""

import traceback
from typing import Callable

from PySide6.QtCore import QObject, Qt, Signal, Slot


class MainThreadDispatcher(QObject):
    """Posts callables to the owning thread's event loop."""

    _invoke = Signal(object)

    def __init__(self, parent: QObject = None):
        super().__init__(parent)
        self._invoke.connect(self._run, Qt.ConnectionType.QueuedConnection)

    def dispatch(self, fn: Callable[[], None]) -> None:
        """Queue fn to run on the owning thread; safe to call from any thread."""
        self._invoke.emit(fn)

    @Slot(object)
    def _run(self, fn: Callable[[], None]) -> None:
        try:
            fn()
        except Exception as e:
            print(f"Error in dispatched callback: {e}")
            traceback.print_exc()
