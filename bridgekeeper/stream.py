"""
Lazy, single-pass text stream shared by the streaming backends.
"""

import enum
import logging
from typing import Callable, Iterable, Iterator, Optional

from .errors import TransportError

logger = logging.getLogger(__name__)


class StreamState(enum.Enum):
    OPEN = 'open'
    DONE = 'done'
    FAILED = 'failed'
    CANCELLED = 'cancelled'


class TextStream:
    """
    Iterator over text fragments produced by a backend.

    The stream can be consumed once. It ends either normally (state DONE)
    or on the first error (state FAILED), in which case the error is raised
    once as TransportError and kept on `error`. `cancel()` closes the
    underlying source; a finished stream yields nothing further.

    Args:
        source: Iterable of raw items from the backend
        extract: Maps a raw item to its text fragment (None/"" fragments are skipped)
        on_close: Optional callback run once when the stream finishes for any reason
    """

    def __init__(self, source: Iterable, extract: Callable[[object], Optional[str]] = str,
                 on_close: Optional[Callable[[], None]] = None):
        self._source: Iterator = iter(source)
        self._extract = extract
        self._on_close = on_close
        self.state = StreamState.OPEN
        self.error: Optional[TransportError] = None

    def __iter__(self) -> 'TextStream':
        return self

    def __next__(self) -> str:
        while self.state is StreamState.OPEN:
            try:
                item = next(self._source)
                fragment = self._extract(item)
            except StopIteration:
                self._finish(StreamState.DONE)
                break
            except TransportError as e:
                self._fail(e)
            except Exception as e:
                self._fail(TransportError(f"Stream failed: {e}"), cause=e)
            if fragment:
                return fragment
        raise StopIteration

    def _fail(self, error: TransportError, cause: Optional[BaseException] = None) -> None:
        if cause is not None:
            error.__cause__ = cause
        self.error = error
        self._finish(StreamState.FAILED)
        logger.error(f"Stream error: {error}")
        raise error

    def _finish(self, state: StreamState) -> None:
        self.state = state
        close = getattr(self._source, 'close', None)
        if callable(close):
            close()
        if self._on_close is not None:
            callback, self._on_close = self._on_close, None
            callback()

    def cancel(self) -> None:
        """Stop the stream early; already finished streams are left as they are."""
        if self.state is StreamState.OPEN:
            logger.debug("Stream cancelled by consumer")
            self._finish(StreamState.CANCELLED)

    def drain(self) -> str:
        """Consume every remaining fragment and return them joined."""
        return ''.join(self)

    @property
    def finished(self) -> bool:
        return self.state is not StreamState.OPEN
