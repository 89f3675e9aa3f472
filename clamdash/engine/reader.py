# clamdash/engine/reader.py
# Incremental line reader over the child's combined stdout/stderr pipe.

from __future__ import annotations

import logging
from typing import IO, Iterator, Union

from clamdash.errors import StreamError

logger = logging.getLogger(__name__)


class LineReader:
    """
    Lazily yields text lines from a byte or text stream.

    - Blocks only inside ``stream.readline()``.
    - Never drops or reorders lines; blank lines are yielded too.
    - A trailing chunk without a newline is flushed as the final line.
    - Finite: stops once the stream reports EOF (empty chunk).

    A reader is consumed once. A new session gets a new reader.
    """

    def __init__(self, stream: IO, encoding: str = "utf-8", errors: str = "replace"):
        self._stream = stream
        self._encoding = encoding
        self._errors = errors
        self._exhausted = False
        self.lines_read = 0

    def __iter__(self) -> Iterator[str]:
        while not self._exhausted:
            try:
                chunk: Union[bytes, str] = self._stream.readline()
            except (OSError, ValueError) as exc:
                self._exhausted = True
                raise StreamError(
                    f"Failed reading process output: {exc}",
                    details={"lines_read": self.lines_read},
                ) from exc

            if not chunk:
                self._exhausted = True
                logger.debug(f"[Reader] EOF after {self.lines_read} lines")
                return

            if isinstance(chunk, bytes):
                chunk = chunk.decode(self._encoding, errors=self._errors)

            self.lines_read += 1
            yield _strip_newline(chunk)


def _strip_newline(line: str) -> str:
    if line.endswith("\r\n"):
        return line[:-2]
    if line.endswith("\n") or line.endswith("\r"):
        return line[:-1]
    return line
