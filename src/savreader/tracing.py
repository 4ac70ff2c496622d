"""
Trace sink plumbing.

Parsing can report what it is doing to a caller-supplied sink: any object
with an append(str) method, a plain list being the usual choice. Trace lines
are diagnostics only; nothing reads them back. Every line is also passed to
the package logger at DEBUG level.
"""

import logging
from typing import Optional, Protocol


logger = logging.getLogger("savreader")


class TraceSink(Protocol):
    def append(self, line: str) -> None:
        ...


class Tracer:
    """Forwards trace lines to an optional sink and to a logger."""

    def __init__(self, sink: Optional[TraceSink] = None, log: Optional[logging.Logger] = None):
        self.sink = sink
        self.log = log or logger

    def __call__(self, line: str) -> None:
        if self.sink is not None:
            self.sink.append(line)
        self.log.debug(line)

    def reset(self) -> None:
        """Empty the sink if it supports clearing."""
        clear = getattr(self.sink, "clear", None)
        if clear is not None:
            clear()


__all__ = ["TraceSink", "Tracer"]
