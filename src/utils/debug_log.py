"""
Debug Log Utility

Provides optional, safe file-based debug logging for the synced probe and the
cross-reference coordinator. Logs are written only when enabled via
environment variable; failures are swallowed so interaction never breaks
because of logging.

Inputs:
    - debug_log(location, message, data) calls from application code
    - probe_debug(msg) calls for console tracing
    - Environment: SYNCEDPROBE_DEBUG_LOG (1, true, or yes enables file log)
    - Environment: SYNCEDPROBE_VERBOSE (1, true, or yes enables console trace)

Outputs:
    - When enabled: appends JSON lines to <project_root>/.debug/debug.log
    - When disabled or on error: no side effects

Requirements:
    - Standard library only: pathlib, os, json, time
"""

import json
import os
import time
from pathlib import Path
from typing import Any, Dict, Optional

# src/utils/debug_log.py -> parent=utils, parent.parent=src, parent.parent.parent=project root
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent

_TRUE_VALUES = ("1", "true", "yes")

DEBUG_LOG_ENABLED = os.getenv("SYNCEDPROBE_DEBUG_LOG", "0").strip().lower() in _TRUE_VALUES
VERBOSE_ENABLED = os.getenv("SYNCEDPROBE_VERBOSE", "0").strip().lower() in _TRUE_VALUES


def probe_debug(msg: str) -> None:
    """Print a cross-reference trace line only when SYNCEDPROBE_VERBOSE is set."""
    if VERBOSE_ENABLED:
        print(f"[CROSSREF DEBUG] {msg}")


def debug_log(
    location: str,
    message: str,
    data: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Append one JSON log line to .debug/debug.log when debug logging is enabled.

    Args:
        location: Call site identifier (e.g. "cross_reference_coordinator:on_point_selected").
        message: Short description of the event.
        data: Context dict; values that are not JSON-serializable are written with repr().
    """
    if not DEBUG_LOG_ENABLED:
        return
    try:
        log_dir = _PROJECT_ROOT / ".debug"
        log_dir.mkdir(parents=True, exist_ok=True)
        payload = {
            "location": location,
            "message": message,
            "data": data or {},
            "timestamp": int(time.time() * 1000),
        }
        with open(log_dir / "debug.log", "a", encoding="utf-8") as f:
            f.write(json.dumps(payload, default=repr) + "\n")
    except Exception:
        pass
