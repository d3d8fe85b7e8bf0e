import json
import logging
import socket

logger = logging.getLogger(__name__)


# ==========================================
# NETWORK ENGINE
# ==========================================
class NetworkBridge:
    """
    Single-client TCP server. Each message is one JSON document followed by
    a newline. Sending without a client is a no-op.
    """

    def __init__(self, host="127.0.0.1", port=5555):
        self.addr = (host, port)
        self.sock = None
        self.conn = None
        self._setup_server()

    @classmethod
    def from_config(cls, cfg):
        ncfg = cfg.get("network", {})
        return cls(host=ncfg.get("host", "127.0.0.1"), port=ncfg.get("port", 5555))

    def _setup_server(self):
        self.sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self.sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self.sock.bind(self.addr)
        self.sock.listen(1)
        self.sock.setblocking(False)  # Non-blocking accept
        logger.info("Listening on %s:%d", *self.addr)

    def update(self):
        """Check for new connections non-blockingly"""
        if self.conn is None:
            try:
                self.conn, addr = self.sock.accept()
                self.conn.setblocking(True)  # Blocking sends
                logger.info("Client connected: %s", addr)
            except BlockingIOError:
                pass

    def send(self, kind, payload):
        if not self.conn:
            return
        msg = json.dumps({"type": kind, "data": payload}) + "\n"
        try:
            self.conn.sendall(msg.encode("utf-8"))
        except (BrokenPipeError, ConnectionResetError):
            logger.info("Client disconnected")
            self.conn.close()
            self.conn = None

    def send_event(self, event):
        """Forward a ProcessedHandEvent."""
        self.send("hand_event", event.to_dict())

    def send_calibration(self, status):
        self.send("calibration", status.to_dict())

    def close(self):
        if self.conn is not None:
            self.conn.close()
            self.conn = None
        if self.sock is not None:
            self.sock.close()
            self.sock = None
