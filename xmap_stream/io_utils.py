"""I/O utilities for captured match stream dumps.

A dump is the raw response body of a match request saved to disk, optionally
gzip-compressed. Reading it back in fixed-size chunks replays the stream
through the same decoder the live client uses.

Example:
    for chunk in iter_chunks(Path("matches.bin.gz"), chunk_size=65536):
        assembler.push(chunk)
"""

import gzip
from contextlib import contextmanager
from pathlib import Path
from typing import BinaryIO, Iterator

# Gzip magic bytes (first two bytes of gzip file)
GZIP_MAGIC = b"\x1f\x8b"

DEFAULT_CHUNK_SIZE = 64 * 1024


def is_gzipped(filepath: Path) -> bool:
    """Whether a dump was saved gzip-compressed.

    Raw match streams have no magic number of their own, so a dump whose
    first two bytes are the gzip magic is treated as compressed. Dumps
    shorter than two bytes (or unreadable) are judged by their suffix.
    """
    try:
        with open(filepath, "rb") as f:
            head = f.read(len(GZIP_MAGIC))
    except OSError:
        head = b""

    if len(head) == len(GZIP_MAGIC):
        return head == GZIP_MAGIC
    return filepath.suffix == ".gz"


@contextmanager
def smart_open(filepath: Path) -> Iterator[BinaryIO]:
    """Open a dump file for binary reading with automatic gzip detection.

    Args:
        filepath: Path to dump file (may be .gz or uncompressed)

    Yields:
        Binary file handle over the decompressed bytes
    """
    if is_gzipped(filepath):
        f = gzip.open(filepath, "rb")
    else:
        f = open(filepath, "rb")

    try:
        yield f
    finally:
        f.close()


def iter_chunks(filepath: Path, chunk_size: int = DEFAULT_CHUNK_SIZE) -> Iterator[bytes]:
    """Read a dump file in fixed-size chunks.

    Args:
        filepath: Path to dump file (may be gzipped)
        chunk_size: Maximum bytes per chunk

    Yields:
        Chunks of at most chunk_size bytes

    Raises:
        FileNotFoundError: If file doesn't exist
    """
    if not filepath.exists():
        raise FileNotFoundError(f"Stream dump not found: {filepath}")

    with smart_open(filepath) as f:
        while True:
            chunk = f.read(chunk_size)
            if not chunk:
                return
            yield chunk
