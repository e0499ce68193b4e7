"""Append-only file sink, one file per destination."""

import asyncio
from collections.abc import Sequence
from pathlib import Path

from perflog.core.exceptions import DeliveryError


class FileSink:
    """File implementation of SinkPort.

    Each destination names a file relative to ``base_dir``; lines are
    appended one per line. Parent directories are created on first write.

    Args:
        base_dir: Directory holding the log files.
        encoding: Text encoding of the files.
    """

    def __init__(self, base_dir: str | Path = ".", encoding: str = "utf-8") -> None:
        self.base_dir = Path(base_dir)
        self.encoding = encoding

    def path_for(self, destination: str) -> Path:
        path = (self.base_dir / destination).resolve()
        if not path.is_relative_to(self.base_dir.resolve()):
            raise DeliveryError(destination, "destination escapes the log directory")
        return path

    async def write(self, destination: str, lines: Sequence[str]) -> None:
        """Append ``lines`` to the destination file."""
        path = self.path_for(destination)
        text = "".join(f"{line}\n" for line in lines)
        await asyncio.to_thread(self._append, path, text)

    def _append(self, path: Path, text: str) -> None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("a", encoding=self.encoding) as handle:
                handle.write(text)
        except OSError as exc:
            raise DeliveryError(str(path), str(exc)) from exc
