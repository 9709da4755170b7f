import sys
import threading

_FRAMES = "⠋⠙⠹⠸⠼⠴⠦⠧⠇⠏"


class Spinner:
    """Renders a spinner on the current line until the first chunk of a reply arrives."""

    def __init__(self, label: str = " Thinking...", stream=None):
        self._label = label
        self._stream = stream or sys.stdout
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and not self._stop.is_set()

    def start(self) -> None:
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.start()

    def stop(self) -> None:
        if self._thread is None or self._stop.is_set():
            return
        self._stop.set()
        self._thread.join()
        self._thread = None
        self._stream.write("\r" + " " * (1 + len(self._label)) + "\r")
        self._stream.flush()

    def _run(self) -> None:
        i = 0
        try:
            while not self._stop.is_set():
                self._stream.write("\r" + _FRAMES[i % len(_FRAMES)] + self._label)
                self._stream.flush()
                self._stop.wait(0.08)
                i += 1
        except (UnicodeEncodeError, OSError):
            return
