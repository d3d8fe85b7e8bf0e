class Subscribers:
    """
    Ordered listener list. Listeners run synchronously in subscription order;
    an exception raised by a listener propagates to the emitter.
    """

    def __init__(self):
        self._listeners = []

    def add(self, listener):
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def clear(self):
        self._listeners.clear()

    def __len__(self):
        return len(self._listeners)

    def emit(self, value):
        # copy so a listener may unsubscribe itself mid-emit
        for listener in list(self._listeners):
            listener(value)


class FrameSource:
    """Push-based source of MultiHandFrame values."""

    def __init__(self):
        self._subscribers = Subscribers()

    def subscribe(self, handler):
        """Register `handler(frame)`. Returns a callable that detaches it."""
        return self._subscribers.add(handler)

    def emit(self, frame):
        self._subscribers.emit(frame)


class InMemoryFrameSource(FrameSource):
    """Frame source fed by hand, for tests and recorded-session replay."""

    def replay(self, frames):
        for frame in frames:
            self.emit(frame)
