import logging
import threading

logger = logging.getLogger(__name__)


class CancelToken:
    """Cooperative cancellation flag, safe to trip from any thread.

    Streaming checks it between chunks; it never interrupts a chunk that is
    already being processed.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()


class CancellationRegistry:
    """Tokens for in-flight assistant messages, keyed by (thread_id, message_id)."""

    def __init__(self) -> None:
        self._tokens: dict[tuple[str, str], CancelToken] = {}
        self._lock = threading.Lock()

    def register(self, thread_id: str, message_id: str, token: CancelToken | None = None) -> CancelToken:
        token = token or CancelToken()
        with self._lock:
            self._tokens[(thread_id, message_id)] = token
        return token

    def release(self, thread_id: str, message_id: str) -> None:
        with self._lock:
            self._tokens.pop((thread_id, message_id), None)

    def cancel(self, thread_id: str, message_id: str) -> bool:
        with self._lock:
            token = self._tokens.get((thread_id, message_id))
        if token is None:
            return False
        token.cancel()
        logger.debug(f"Cancellation requested for {thread_id}/{message_id}")
        return True

    def __len__(self) -> int:
        with self._lock:
            return len(self._tokens)
