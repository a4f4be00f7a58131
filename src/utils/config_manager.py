"""
Configuration Manager

This module handles persistent storage and retrieval of synced probe settings.
Settings are stored in a JSON file in the user's application data directory.

Inputs:
    - User preferences (marker style, loader cache size, layout, etc.)

Outputs:
    - Loaded configuration values
    - Saved configuration file

Requirements:
    - json module (standard library)
    - pathlib module (standard library)
    - os module (standard library)
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, Optional, Tuple


class ConfigManager:
    """
    Manages synced probe configuration.

    Handles loading and saving of settings including:
    - Probe marker radius, color and shadow
    - Slice loader cache size and worker count
    - Default prevent-cache behavior for new stacks
    - Multi-window layout of the demo viewer
    """

    def __init__(self, config_filename: str = "synced_probe_config.json",
                 config_dir: Optional[Path] = None):
        """
        Initialize the configuration manager.

        Args:
            config_filename: Name of the configuration file to use
            config_dir: Optional directory override (tests use a temp dir)
        """
        if config_dir is not None:
            self.config_dir = Path(config_dir)
        elif os.name == 'nt':  # Windows
            app_data = os.getenv('APPDATA', os.path.expanduser('~'))
            self.config_dir = Path(app_data) / "SyncedProbe"
        else:  # Mac/Linux
            self.config_dir = Path.home() / ".config" / "SyncedProbe"

        self.config_dir.mkdir(parents=True, exist_ok=True)
        self.config_path = self.config_dir / config_filename

        self.default_config = {
            "probe_marker_radius": 2,  # Circle radius in viewport pixels
            "probe_marker_color_r": 0,  # Active tool color (green default)
            "probe_marker_color_g": 255,
            "probe_marker_color_b": 0,
            "probe_shadow_enabled": True,
            "probe_shadow_color_r": 0,
            "probe_shadow_color_g": 0,
            "probe_shadow_color_b": 0,
            "probe_shadow_offset": 1,  # Shadow offset in viewport pixels
            "loader_cache_size": 256,  # Max decoded slices kept in the LRU cache
            "loader_max_workers": 4,  # Background decode threads
            "prevent_cache_default": False,  # New stacks bypass the cache when True
            "multi_window_layout": "2x2",  # "1x2", "2x1", "2x2"
        }

        self.config = self._load_config()

    def _load_config(self) -> Dict[str, Any]:
        """
        Load configuration from file, or return defaults if file doesn't exist.

        Returns:
            Dictionary containing configuration values
        """
        if self.config_path.exists():
            try:
                with open(self.config_path, 'r', encoding='utf-8') as f:
                    loaded_config = json.load(f)
                config = self.default_config.copy()
                if isinstance(loaded_config, dict):
                    config.update(loaded_config)
                return config
            except (json.JSONDecodeError, IOError) as e:
                print(f"Warning: Could not load config file: {e}")
                return self.default_config.copy()
        return self.default_config.copy()

    def save_config(self) -> bool:
        """
        Save current configuration to file.

        Returns:
            True if save was successful, False otherwise
        """
        try:
            with open(self.config_path, 'w', encoding='utf-8') as f:
                json.dump(self.config, f, indent=4, ensure_ascii=False)
            return True
        except IOError as e:
            print(f"Error saving config file: {e}")
            return False

    def get(self, key: str, default: Any = None) -> Any:
        """Get a configuration value, or default if the key is unknown."""
        return self.config.get(key, default)

    def set(self, key: str, value: Any) -> None:
        """Set a configuration value (not saved until save_config)."""
        self.config[key] = value

    def _get_int(self, key: str, default: int) -> int:
        """Integer setting; a hand-edited value that is not a number gives default."""
        try:
            return int(self.config.get(key, default))
        except (TypeError, ValueError, OverflowError):
            print(f"Warning: Invalid value for config key '{key}', using default {default}")
            return default

    def _get_bool(self, key: str, default: bool) -> bool:
        value = self.config.get(key, default)
        if isinstance(value, bool):
            return value
        print(f"Warning: Invalid value for config key '{key}', using default {default}")
        return default

    def _get_color(self, prefix: str) -> Tuple[int, int, int]:
        return tuple(
            max(0, min(255, self._get_int(f"{prefix}_{channel}", self.default_config[f"{prefix}_{channel}"])))
            for channel in "rgb"
        )

    def _set_color(self, prefix: str, r: int, g: int, b: int) -> None:
        self.config[f"{prefix}_r"] = max(0, min(255, int(r)))
        self.config[f"{prefix}_g"] = max(0, min(255, int(g)))
        self.config[f"{prefix}_b"] = max(0, min(255, int(b)))
        self.save_config()

    def get_probe_marker_radius(self) -> int:
        return self._get_int("probe_marker_radius", 2)

    def set_probe_marker_radius(self, radius: int) -> None:
        """
        Set the probe marker radius.

        Args:
            radius: Radius in viewport pixels (clamped to 1-50)
        """
        self.config["probe_marker_radius"] = max(1, min(50, int(radius)))
        self.save_config()

    def get_probe_marker_color(self) -> Tuple[int, int, int]:
        """
        Get the probe marker color.

        Returns:
            Tuple of (r, g, b) values (0-255)
        """
        return self._get_color("probe_marker_color")

    def set_probe_marker_color(self, r: int, g: int, b: int) -> None:
        self._set_color("probe_marker_color", r, g, b)

    def get_probe_shadow_enabled(self) -> bool:
        return self._get_bool("probe_shadow_enabled", True)

    def set_probe_shadow_enabled(self, enabled: bool) -> None:
        self.config["probe_shadow_enabled"] = bool(enabled)
        self.save_config()

    def get_probe_shadow_color(self) -> Tuple[int, int, int]:
        return self._get_color("probe_shadow_color")

    def set_probe_shadow_color(self, r: int, g: int, b: int) -> None:
        self._set_color("probe_shadow_color", r, g, b)

    def get_probe_shadow_offset(self) -> int:
        return self._get_int("probe_shadow_offset", 1)

    def set_probe_shadow_offset(self, offset: int) -> None:
        self.config["probe_shadow_offset"] = max(0, min(10, int(offset)))
        self.save_config()

    def get_loader_cache_size(self) -> int:
        """
        Get the maximum number of decoded slices held by the slice loader.

        Returns:
            Cache size (0 disables caching)
        """
        return max(0, self._get_int("loader_cache_size", 256))

    def set_loader_cache_size(self, size: int) -> None:
        self.config["loader_cache_size"] = max(0, int(size))
        self.save_config()

    def get_loader_max_workers(self) -> int:
        return max(1, self._get_int("loader_max_workers", 4))

    def set_loader_max_workers(self, workers: int) -> None:
        self.config["loader_max_workers"] = max(1, int(workers))
        self.save_config()

    def get_prevent_cache_default(self) -> bool:
        return self._get_bool("prevent_cache_default", False)

    def set_prevent_cache_default(self, prevent: bool) -> None:
        self.config["prevent_cache_default"] = bool(prevent)
        self.save_config()

    def get_multi_window_layout(self) -> str:
        """
        Get multi-window layout mode.

        Returns:
            Layout mode string: "1x2", "2x1", or "2x2"
        """
        layout = self.config.get("multi_window_layout", "2x2")
        if layout not in ("1x2", "2x1", "2x2"):
            return "2x2"
        return layout

    def set_multi_window_layout(self, layout_mode: str) -> None:
        """
        Set multi-window layout mode.

        Args:
            layout_mode: "1x2", "2x1", or "2x2" (other values are ignored)
        """
        if layout_mode in ("1x2", "2x1", "2x2"):
            self.config["multi_window_layout"] = layout_mode
            self.save_config()
