import math
import sys

TWO_PI = 2.0 * math.pi


def smoothing_factor(dt, cutoff):
    """alpha = r / (r + 1) with r = 2*pi*cutoff*dt"""
    r = TWO_PI * cutoff * dt
    return r / (r + 1.0)


class AdaptiveFilter:
    """
    One Euro style low-pass filter for a single scalar channel.

    The cutoff rises with the (smoothed) speed of the signal: a hand held still
    is smoothed hard, a fast flick passes through with little lag.
    Timestamps are in milliseconds.
    """

    def __init__(self, min_cutoff=1.2, beta=0.002, d_cutoff=1.0):
        self.min_cutoff = min_cutoff
        self.beta = beta
        self.d_cutoff = d_cutoff
        self.last_value = None
        self.last_timestamp = None
        self.last_derivative = None

    @classmethod
    def from_config(cls, cfg):
        s = cfg.get("smoothing", {})
        return cls(
            min_cutoff=s.get("min_cutoff", 1.2),
            beta=s.get("beta", 0.002),
            d_cutoff=s.get("d_cutoff", 1.0),
        )

    def reset(self):
        self.last_value = None
        self.last_timestamp = None
        self.last_derivative = None

    def filter(self, value, timestamp_ms):
        if self.last_value is None or self.last_timestamp is None:
            # first sample passes through untouched
            self.last_value = value
            self.last_timestamp = timestamp_ms
            self.last_derivative = 0.0
            return value

        dt = max((timestamp_ms - self.last_timestamp) / 1000.0, sys.float_info.epsilon)
        dx = (value - self.last_value) / dt

        alpha_d = smoothing_factor(dt, self.d_cutoff)
        prev_d = dx if self.last_derivative is None else self.last_derivative
        d_hat = alpha_d * dx + (1.0 - alpha_d) * prev_d

        cutoff = self.min_cutoff + self.beta * abs(d_hat)
        alpha = smoothing_factor(dt, cutoff)
        filtered = alpha * value + (1.0 - alpha) * self.last_value

        self.last_value = filtered
        self.last_timestamp = timestamp_ms
        self.last_derivative = d_hat
        return filtered
