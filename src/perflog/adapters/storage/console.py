"""Console sink writing lines to a text stream."""

import sys
from collections.abc import Sequence
from typing import TextIO


class ConsoleSink:
    """Stream implementation of SinkPort.

    Args:
        stream: Target stream (default: standard error at write time).
        prefix: Prepend ``[destination]`` to every line.
    """

    def __init__(self, stream: TextIO | None = None, prefix: bool = True) -> None:
        self._stream = stream
        self.prefix = prefix

    async def write(self, destination: str, lines: Sequence[str]) -> None:
        stream = self._stream or sys.stderr
        for line in lines:
            stream.write(f"[{destination}] {line}\n" if self.prefix else f"{line}\n")
        stream.flush()
