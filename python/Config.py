import copy
import json
import logging
import os
import time

logger = logging.getLogger(__name__)


class ConfigError(ValueError):
    """Raised when a configuration value is out of range or has the wrong type."""


# ==========================================
# DEFAULTS
# ==========================================
DEFAULT_CONFIG = {
    "virtual_pad": {
        # fraction of the camera frame that maps onto the full screen
        "width": 0.4,
        "height": 0.4,
        "dead_zone": 0.004,
        "stability_tolerance": 0.015,
    },
    "gestures": {
        "pinch_threshold": 0.05,
        "fist_threshold": 0.16,
        "extension_threshold": 0.55,
        "thumb_spread_threshold": 0.15,
    },
    "smoothing": {
        "min_cutoff": 1.2,
        "beta": 0.002,
        "d_cutoff": 1.0,
    },
    "axes": {
        # webcam image is mirrored
        "invert_x": True,
        "invert_y": False,
    },
    "roles": {
        "split_x": 0.4,
    },
    "identity": {
        "signature_match_threshold": 0.60,
        "continuity_distance": 0.25,
        "continuity_memory_ms": 1000.0,
    },
    "calibration": {
        "stability_required_ms": 4000.0,
        "detection_timeout_ms": 200.0,
        "grace_period_ms": 500.0,
        "tick_interval_ms": 50.0,
        "spatial_separation_threshold": 0.15,
        "movement_threshold": 0.015,
        "pinch_distance_threshold": 0.12,
        "point_score_threshold": 7.0,
        "anchor_landmark": 8,
        "capture_signatures": True,
    },
    "tracker": {
        "camera_index": 0,
        "model_complexity": 1,
        "min_detection_confidence": 0.5,
        "min_tracking_confidence": 0.5,
        "max_num_hands": 2,
    },
    "network": {
        "host": "127.0.0.1",
        "port": 5555,
    },
    "debug": {
        "draw_landmarks": True,
        "frame_width": 1280,
        "frame_height": 720,
    },
}

# (section, key) pairs that must lie in [0, 1]
_UNIT_INTERVAL_KEYS = (
    ("virtual_pad", "dead_zone"),
    ("virtual_pad", "stability_tolerance"),
    ("gestures", "pinch_threshold"),
    ("gestures", "fist_threshold"),
    ("gestures", "extension_threshold"),
    ("gestures", "thumb_spread_threshold"),
    ("roles", "split_x"),
    ("identity", "signature_match_threshold"),
    ("identity", "continuity_distance"),
    ("calibration", "spatial_separation_threshold"),
    ("calibration", "movement_threshold"),
    ("calibration", "pinch_distance_threshold"),
)

# (section, key) pairs that must be strictly positive
_POSITIVE_KEYS = (
    ("virtual_pad", "width"),
    ("virtual_pad", "height"),
    ("smoothing", "min_cutoff"),
    ("smoothing", "d_cutoff"),
    ("identity", "continuity_memory_ms"),
    ("calibration", "stability_required_ms"),
    ("calibration", "detection_timeout_ms"),
    ("calibration", "grace_period_ms"),
    ("calibration", "tick_interval_ms"),
)

_BOOL_KEYS = (
    ("axes", "invert_x"),
    ("axes", "invert_y"),
    ("calibration", "capture_signatures"),
)


def merge_config(overrides=None, base=None):
    """
    Deep-merge `overrides` into a copy of `base` (defaults when omitted).
    Unknown sections are kept so callers can carry their own settings.
    """
    cfg = copy.deepcopy(base if base is not None else DEFAULT_CONFIG)
    if overrides is None:
        return cfg
    if not isinstance(overrides, dict):
        raise ConfigError(f"config must be a JSON object, got {type(overrides).__name__}")
    for k, v in overrides.items():
        if isinstance(v, dict):
            section = cfg.setdefault(k, {})
            if not isinstance(section, dict):
                raise ConfigError(f"{k} must be a section, got {section!r}")
            section.update(v)
        elif isinstance(cfg.get(k), dict):
            raise ConfigError(f"{k} must be a section, got {v!r}")
        else:
            cfg[k] = v
    return cfg


def _section(cfg, section):
    values = cfg.get(section, {})
    if not isinstance(values, dict):
        raise ConfigError(f"{section} must be a section, got {values!r}")
    return values


def _number(cfg, section, key):
    value = _section(cfg, section).get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"{section}.{key} must be a number, got {value!r}")
    return float(value)


def validate_config(cfg):
    """Fail fast on nonsensical settings. Returns the config unchanged."""
    for section, key in _UNIT_INTERVAL_KEYS:
        value = _number(cfg, section, key)
        if not 0.0 <= value <= 1.0:
            raise ConfigError(f"{section}.{key} must be within [0, 1], got {value}")

    for section, key in _POSITIVE_KEYS:
        value = _number(cfg, section, key)
        if value <= 0.0:
            raise ConfigError(f"{section}.{key} must be positive, got {value}")

    if _number(cfg, "smoothing", "beta") < 0.0:
        raise ConfigError("smoothing.beta must not be negative")

    score = _number(cfg, "calibration", "point_score_threshold")
    if not 0.0 <= score <= 10.0:
        raise ConfigError(f"calibration.point_score_threshold must be within [0, 10], got {score}")

    anchor = _section(cfg, "calibration").get("anchor_landmark")
    if isinstance(anchor, bool) or not isinstance(anchor, int) or not 0 <= anchor <= 20:
        raise ConfigError(f"calibration.anchor_landmark must be a landmark index 0..20, got {anchor!r}")

    for section, key in _BOOL_KEYS:
        value = _section(cfg, section).get(key)
        if not isinstance(value, bool):
            raise ConfigError(f"{section}.{key} must be true or false, got {value!r}")

    return cfg


def build_config(overrides=None):
    """Defaults + overrides, validated."""
    return validate_config(merge_config(overrides))


def load_config(path="config.json"):
    """Read a JSON config file and merge it over the defaults."""
    if not os.path.exists(path):
        logger.warning("config '%s' not found, using defaults.", path)
        return build_config()
    with open(path, "r", encoding="utf-8") as f:
        try:
            user_cfg = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigError(f"config '{path}' is not valid JSON: {e}") from e
    return build_config(user_cfg)


class ConfigWatcher:
    """
    Watches a JSON config file and reloads it when the file changes.
    Usage:
        watcher = ConfigWatcher("config.json")
        cfg = watcher.get_config()        # initial load
        # later:
        cfg = watcher.check_reload()      # returns new cfg or same dict
    A reload that fails validation keeps the previous config.
    """

    def __init__(self, path="config.json", min_check_interval=0.5):
        self.path = path
        self._cfg = load_config(path)
        self._mtime = os.path.getmtime(path) if os.path.exists(path) else 0.0
        self._last_checked = 0.0
        self._min_check_interval = min_check_interval  # seconds between checks

    def get_config(self):
        return self._cfg

    def check_reload(self):
        """
        Call frequently (cheap). Will only stat the file every _min_check_interval seconds.
        Returns current config (reloaded if changed).
        """
        now = time.time()
        if now - self._last_checked < self._min_check_interval:
            return self._cfg
        self._last_checked = now

        if not os.path.exists(self.path):
            # file missing -> keep existing config
            return self._cfg
        m = os.path.getmtime(self.path)
        if m == self._mtime:
            return self._cfg

        self._mtime = m
        logger.info("Detected change in '%s', reloading...", self.path)
        try:
            self._cfg = load_config(self.path)
        except ConfigError as e:
            logger.error("Rejected reloaded config: %s", e)
        return self._cfg
