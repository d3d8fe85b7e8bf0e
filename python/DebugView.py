import cv2

from HandFrame import LANDMARK_COUNT

# Connections between the 21 hand landmarks for drawing
HAND_CONNECTIONS = [
    (0, 1), (1, 2), (2, 3), (3, 4),          # thumb
    (0, 5), (5, 6), (6, 7), (7, 8),          # index
    (0, 9), (9, 10), (10, 11), (11, 12),     # middle
    (0, 13), (13, 14), (14, 15), (15, 16),   # ring
    (0, 17), (17, 18), (18, 19), (19, 20),   # pinky
    (5, 9), (9, 13), (13, 17),               # palm
]

MATCHED_COLOR = (0, 255, 0)
REJECTED_COLOR = (0, 0, 255)
TEXT_COLOR = (255, 255, 0)


def _pixel(lm, w, h):
    return int(lm.x * w), int(lm.y * h)


def draw_detected_hand(frame, detected):
    """Wireframe of one detected hand, green when it passed gating, red otherwise."""
    if len(detected.landmarks) != LANDMARK_COUNT:
        return
    h, w, _ = frame.shape
    color = MATCHED_COLOR if detected.matched else REJECTED_COLOR
    pts = [_pixel(lm, w, h) for lm in detected.landmarks]
    for a, b in HAND_CONNECTIONS:
        cv2.line(frame, pts[a], pts[b], color, 2, cv2.LINE_AA)
    for p in pts:
        cv2.circle(frame, p, 3, color, -1)

    label = detected.role.value
    if detected.score is not None:
        label += f" {detected.score:.2f}"
    x, y = pts[0]
    cv2.putText(frame, label, (x + 6, y + 16), cv2.FONT_HERSHEY_SIMPLEX, 0.5, color, 1, cv2.LINE_AA)


def draw_event(frame, event):
    if event is None:
        return
    for detected in event.detected:
        draw_detected_hand(frame, detected)

    h, w, _ = frame.shape
    cx, cy = int(event.cursor[0] * w), int(event.cursor[1] * h)
    cv2.drawMarker(frame, (cx, cy), TEXT_COLOR, cv2.MARKER_CROSS, 24, 2)
    info = f"gesture: {event.gesture.value}  stable: {event.stable}"
    cv2.putText(frame, info, (10, 30), cv2.FONT_HERSHEY_SIMPLEX, 0.7, TEXT_COLOR, 2, cv2.LINE_AA)


def draw_calibration(frame, status):
    h, w, _ = frame.shape
    bar_w = int((w - 20) * status.progress)
    cv2.rectangle(frame, (10, h - 30), (w - 10, h - 10), (80, 80, 80), 1)
    cv2.rectangle(frame, (10, h - 30), (10 + bar_w, h - 10), MATCHED_COLOR, -1)
    text = status.reason.value if status.reason else status.state.value
    cv2.putText(frame, text, (10, h - 40), cv2.FONT_HERSHEY_SIMPLEX, 0.6, TEXT_COLOR, 2, cv2.LINE_AA)
