import logging
import threading
import time
from queue import Empty, Full, Queue

import cv2

from CalibrationSession import CalibrationSession
from Config import ConfigWatcher
from DebugView import draw_calibration, draw_event
from FrameSource import InMemoryFrameSource
from HandTracker import HandTracker
from InputProcessor import InputProcessor
from Network import NetworkBridge

logger = logging.getLogger(__name__)

# --------------------------------------------------------
# Queue for latest frame only (overwrite when full)
# --------------------------------------------------------
FRAME_QUEUE_MAX = 1

# config sections a hot reload applies without restarting
LIVE_SECTIONS = ("gestures",)


def now_ms():
    return time.monotonic() * 1000.0


# --------------------------------------------------------
# CAPTURE THREAD
# --------------------------------------------------------
def _capture(frame_queue, stop_event, cfg):
    cap = cv2.VideoCapture(cfg.get("tracker", {}).get("camera_index", 0))
    if not cap.isOpened():
        logger.error("Cannot open camera")
        stop_event.set()
        return

    tracker = None
    try:
        tracker = HandTracker(cfg)
        logger.info("Capture thread started.")

        while not stop_event.is_set():
            ok, frame = cap.read()
            if not ok:
                time.sleep(0.01)
                continue

            # Flip for mirror view, convert to RGB for MediaPipe
            frame = cv2.flip(frame, 1)
            rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
            hands = tracker.process_frame(rgb, now_ms())

            if frame_queue.full():
                try:
                    frame_queue.get_nowait()  # remove older frame
                except Empty:
                    pass
            try:
                frame_queue.put_nowait((frame, hands))
            except Full:
                pass
    finally:
        if tracker is not None:
            tracker.close()
        cap.release()
        logger.info("Capture thread exiting.")


# --------------------------------------------------------
# PROCESSING THREAD
# --------------------------------------------------------
class Pipeline:
    """
    Owns the calibration session and the input processor. Runs entirely on
    the processing thread: frames and timer ticks are handled one at a time.
    """

    def __init__(self, cfg, use_signature_lock=True, skip_calibration=False, bridge=None):
        self.cfg = cfg
        self.use_signature_lock = use_signature_lock
        self.bridge = bridge
        self.source = InMemoryFrameSource()
        self.processor = InputProcessor(self.source, cfg)
        self.session = None if skip_calibration else CalibrationSession(cfg)
        self.tick_interval_ms = cfg["calibration"]["tick_interval_ms"]
        self.last_event = None
        self.last_status = None
        self._last_tick = None

        self.processor.subscribe(self._on_event)
        if self.session is not None:
            self.session.subscribe(self._on_status)

    @property
    def calibrating(self):
        return self.session is not None and not self.session.is_locked

    def _on_event(self, event):
        self.last_event = event
        if self.bridge is not None:
            self.bridge.send_event(event)

    def _on_status(self, status):
        self.last_status = status
        if self.bridge is not None:
            self.bridge.send_calibration(status)

    def handle_frame(self, frame):
        if self.calibrating:
            self.session.observe(frame)
        else:
            self.source.emit(frame)

    def tick(self, now):
        """Drive the calibration timer; a no-op once calibration is locked."""
        if not self.calibrating:
            return
        if self._last_tick is not None and now - self._last_tick < self.tick_interval_ms:
            return
        self._last_tick = now
        status = self.session.tick(now)
        if status.locked:
            self.processor.set_calibration(self.session.offset)
            if self.use_signature_lock and self.session.locked_signatures:
                self.processor.set_locked_signatures(self.session.locked_signatures)

    def apply_config(self, cfg):
        """
        Apply a reloaded config. Only gesture thresholds take effect live;
        returns the other sections that changed and need a restart.
        """
        self.processor.classifier.update_config({"gestures": cfg.get("gestures", {})})
        self.cfg = dict(self.cfg, gestures=dict(cfg.get("gestures", {})))
        logger.info("Applied reloaded gesture thresholds")

        pending = sorted(
            s for s in cfg if s not in LIVE_SECTIONS and cfg.get(s) != self.cfg.get(s)
        )
        if pending:
            logger.warning("Config sections %s changed; restart to apply them", ", ".join(pending))
        return pending

    def recalibrate(self):
        self.session = CalibrationSession(self.cfg)
        self.session.subscribe(self._on_status)
        self.processor.clear_signature_lock()
        self._last_tick = None


def _process(frame_queue, stop_event, cfg, config_path, options):
    cfg_watcher = ConfigWatcher(config_path)
    bridge = NetworkBridge.from_config(cfg)
    pipeline = Pipeline(
        cfg,
        use_signature_lock=options.get("signature_lock", True),
        skip_calibration=options.get("skip_calibration", False),
        bridge=bridge,
    )

    debug_cfg = cfg.get("debug", {})
    debug_window = "Hand Input Debug"
    if debug_cfg.get("draw_landmarks", True):
        cv2.namedWindow(debug_window, cv2.WINDOW_NORMAL)
        cv2.resizeWindow(debug_window, debug_cfg.get("frame_width", 1280), debug_cfg.get("frame_height", 720))

    logger.info("Processing thread started.")
    timeout = pipeline.tick_interval_ms / 1000.0
    active_cfg = cfg_watcher.get_config()

    try:
        while not stop_event.is_set():
            bridge.update()
            try:
                frame, hands = frame_queue.get(timeout=timeout)
            except Empty:
                frame, hands = None, None

            current_cfg = cfg_watcher.check_reload()
            if current_cfg is not active_cfg:
                active_cfg = current_cfg
                pipeline.apply_config(current_cfg)

            if hands is not None:
                pipeline.handle_frame(hands)
            pipeline.tick(now_ms())

            if frame is None or not debug_cfg.get("draw_landmarks", True):
                continue
            if pipeline.calibrating and pipeline.last_status is not None:
                draw_calibration(frame, pipeline.last_status)
            else:
                draw_event(frame, pipeline.last_event)
            cv2.imshow(debug_window, frame)
            key = cv2.waitKey(1) & 0xFF
            if key == 27:  # ESC
                stop_event.set()
            elif key == ord("c"):
                logger.info("Recalibrating")
                pipeline.recalibrate()
    finally:
        pipeline.processor.dispose()
        bridge.close()
        cv2.destroyAllWindows()
        logger.info("Processing thread exiting.")


def _stop_on_error(name, target, stop_event, *args):
    """Run a worker; if it dies, stop the other threads before re-raising."""
    try:
        target(*args)
    except Exception:
        logger.exception("%s thread crashed", name)
        raise
    finally:
        stop_event.set()


def capture_thread(frame_queue, stop_event, cfg):
    _stop_on_error("Capture", _capture, stop_event, frame_queue, stop_event, cfg)


def processing_thread(frame_queue, stop_event, cfg, config_path, options):
    _stop_on_error(
        "Processing", _process, stop_event, frame_queue, stop_event, cfg, config_path, options
    )


# --------------------------------------------------------
# MAIN ENTRY
# --------------------------------------------------------
def main(cfg, config_path="config.json", **options):
    frame_queue = Queue(maxsize=FRAME_QUEUE_MAX)
    stop_event = threading.Event()

    cap_thread = threading.Thread(
        target=capture_thread, args=(frame_queue, stop_event, cfg), daemon=True
    )
    proc_thread = threading.Thread(
        target=processing_thread,
        args=(frame_queue, stop_event, cfg, config_path, options),
        daemon=True,
    )

    cap_thread.start()
    proc_thread.start()

    # Keep main thread alive
    try:
        while not stop_event.is_set():
            time.sleep(0.1)
    except KeyboardInterrupt:
        stop_event.set()

    cap_thread.join(timeout=1.0)
    proc_thread.join(timeout=1.0)
    logger.info("Shutdown complete.")
