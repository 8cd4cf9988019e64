# disclosure/clients/archiver.py
from __future__ import annotations

import io
import shutil
import threading
import zipfile
from typing import BinaryIO, Iterable, Optional, Protocol, Tuple, Union

Source = Union[bytes, BinaryIO]
Entry = Tuple[Source, str]


class Archiver(Protocol):
    def build(self, entries: Iterable[Entry]) -> bytes: ...


class ZipArchiver:
    """Streams each source into a deflated zip, in the order given."""

    def __init__(self, *, compresslevel: int = 9) -> None:
        self.compresslevel = compresslevel

    def build(self, entries: Iterable[Entry]) -> bytes:
        buf = io.BytesIO()
        seen: set[str] = set()
        with zipfile.ZipFile(buf, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=self.compresslevel) as zf:
            for source, name in entries:
                if name in seen:
                    raise ValueError(f"duplicate archive entry: {name}")
                seen.add(name)
                with zf.open(name, "w") as dst:
                    if isinstance(source, (bytes, bytearray)):
                        dst.write(source)
                    else:
                        shutil.copyfileobj(source, dst, length=64 * 1024)
        return buf.getvalue()


_archiver: Optional[Archiver] = None
_archiver_lock = threading.Lock()


def get_archiver() -> Archiver:
    global _archiver
    if _archiver is None:
        with _archiver_lock:
            if _archiver is None:
                _archiver = ZipArchiver()
    return _archiver
