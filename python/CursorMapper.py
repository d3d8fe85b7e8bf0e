import math

from helpers import clamp01

CENTER = (0.5, 0.5)


class CursorMapper:
    """
    Virtual mousepad: a small region of hand movement around the calibrated
    center maps onto the whole screen.

    Output is clamped to [0, 1] per axis. Moves smaller than the dead zone
    return the previous cursor so residual jitter does not creep the pointer.
    Keep one mapper per hand role; the dead zone state is per instance.
    """

    def __init__(self, pad_width=0.4, pad_height=0.4, dead_zone=0.004, invert_x=True, invert_y=False):
        self.pad_width = pad_width
        self.pad_height = pad_height
        self.dead_zone = dead_zone
        self.invert_x = invert_x
        self.invert_y = invert_y
        self._calibration = CENTER
        self._last_cursor = CENTER

    @classmethod
    def from_config(cls, cfg):
        pad = cfg.get("virtual_pad", {})
        axes = cfg.get("axes", {})
        return cls(
            pad_width=pad.get("width", 0.4),
            pad_height=pad.get("height", 0.4),
            dead_zone=pad.get("dead_zone", 0.004),
            invert_x=axes.get("invert_x", True),
            invert_y=axes.get("invert_y", False),
        )

    def set_calibration(self, offset):
        """Set the user's natural hand position; it maps to screen center."""
        self._calibration = (float(offset[0]), float(offset[1]))

    def get_calibration(self):
        return self._calibration

    def reset_last_position(self):
        """Forget the dead-zone anchor, e.g. after the hand was lost."""
        self._last_cursor = CENTER

    @property
    def last_cursor(self):
        return self._last_cursor

    def project(self, pos, pad_width=None, pad_height=None):
        """Pad transform + clamp, without dead zone or state changes."""
        width = self.pad_width if pad_width is None else pad_width
        height = self.pad_height if pad_height is None else pad_height
        x_mul = -1.0 if self.invert_x else 1.0
        y_mul = -1.0 if self.invert_y else 1.0

        offset_x = pos[0] - self._calibration[0]
        offset_y = pos[1] - self._calibration[1]
        scaled_x = x_mul * offset_x / width + 0.5
        scaled_y = y_mul * offset_y / height + 0.5
        return (clamp01(scaled_x), clamp01(scaled_y))

    def to_cursor(self, pos):
        """
        Raw tracker position (0 = left/top, 1 = right/bottom) -> screen cursor in [0, 1].
        """
        return self._apply_dead_zone(self.project(pos))

    def to_cursor_with_size(self, pos, pad_size):
        """Same as to_cursor but with a square pad of `pad_size` (calibration screens)."""
        if pad_size <= 0:
            raise ValueError(f"pad_size must be positive, got {pad_size}")
        return self._apply_dead_zone(self.project(pos, pad_size, pad_size))

    def _apply_dead_zone(self, cursor):
        last = self._last_cursor
        if math.hypot(cursor[0] - last[0], cursor[1] - last[1]) < self.dead_zone:
            return last
        self._last_cursor = cursor
        return cursor
