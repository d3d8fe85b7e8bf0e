import logging

import mediapipe as mp

from FrameSource import FrameSource
from HandFrame import HandFrame, InvalidHandError, Landmark, MultiHandFrame

logger = logging.getLogger(__name__)


class HandTracker(FrameSource):
    """
    MediaPipe Hands adapter. Turns RGB camera frames into MultiHandFrame
    values and pushes them to subscribers.
    """

    def __init__(self, cfg):
        super().__init__()
        self.cfg = cfg
        tcfg = cfg.get("tracker", {})

        self.mp_hands = mp.solutions.hands.Hands(
            model_complexity=tcfg.get("model_complexity", 1),
            min_detection_confidence=tcfg.get("min_detection_confidence", 0.5),
            min_tracking_confidence=tcfg.get("min_tracking_confidence", 0.5),
            max_num_hands=tcfg.get("max_num_hands", 2),
        )

    def process_frame(self, frame_rgb, timestamp_ms):
        """
        Run detection on an RGB frame (caller converts from BGR).
        Returns the MultiHandFrame after emitting it; hands without 21
        landmarks are dropped here.
        """
        result = self.mp_hands.process(frame_rgb)
        hands = []

        if result.multi_hand_landmarks:
            for lm, handed in zip(result.multi_hand_landmarks, result.multi_handedness):
                hand = HandFrame(
                    handedness=handed.classification[0].label,
                    landmarks=[Landmark(p.x, p.y, p.z) for p in lm.landmark],
                    timestamp=timestamp_ms,
                )
                try:
                    hands.append(hand.validate())
                except InvalidHandError as e:
                    logger.debug("tracker dropped hand: %s", e)

        frame = MultiHandFrame(timestamp=timestamp_ms, hands=tuple(hands))
        self.emit(frame)
        return frame

    def close(self):
        self.mp_hands.close()
