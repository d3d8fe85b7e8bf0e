import math

import numpy as np

EPSILON = 1e-9


# ---------- vector & geometry ----------
def vec_sub(a, b):
    return (a.x - b.x, a.y - b.y, a.z - b.z)


def vec_len(v):
    return math.sqrt(v[0] * v[0] + v[1] * v[1] + v[2] * v[2])


def clamp01(v):
    return max(0.0, min(1.0, v))


def dist(a, b):
    """Euclidean distance in normalized coordinates between two landmarks."""
    return vec_len(vec_sub(a, b))


def dist2d(a, b):
    """Planar distance between two (x, y) pairs."""
    return math.hypot(a[0] - b[0], a[1] - b[1])


def bounding_diagonal(landmarks):
    """
    Diagonal of the 2D bounding box around all landmarks.
    Used as a per-hand scale so thresholds work at any distance from the camera.
    """
    pts = np.array([(lm.x, lm.y) for lm in landmarks], dtype=float)
    span = pts.max(axis=0) - pts.min(axis=0)
    return max(float(np.hypot(span[0], span[1])), EPSILON)


def normalized_distance(a, b, scale):
    return dist(a, b) / max(scale, EPSILON)


def mean_point(points):
    """Arithmetic mean of a non-empty sequence of (x, y) pairs."""
    arr = np.asarray(points, dtype=float)
    if arr.size == 0:
        raise ValueError("Need at least one point to average")
    mx, my = arr.mean(axis=0)
    return (float(mx), float(my))
