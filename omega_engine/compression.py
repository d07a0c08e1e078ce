"""
Payload codec for the on-disk options file.

The file area stores one JSON document. It may be written zstd-compressed; reads
detect compression from the zstd frame magic so that switching the setting
never strands an existing file.
"""

from __future__ import annotations

from enum import Enum
from typing import Final

import zstandard as zstd

ZSTD_MAGIC: Final[bytes] = b"\x28\xb5\x2f\xfd"


class CompressionFormat(str, Enum):
    """
    Supported encodings for the persisted options payload.
    """

    ZSTD = "zstd"
    NONE = "none"


def is_zstd_payload(data: bytes) -> bool:
    """Return True if `data` starts with a zstd frame header."""
    return data[: len(ZSTD_MAGIC)] == ZSTD_MAGIC


def encode_payload(data: bytes, format: CompressionFormat) -> bytes:
    """
    Encode serialized JSON for writing.

    Parameters
    ----------
    data:
        UTF-8 JSON bytes.
    format:
        Target encoding.

    Returns
    -------
    bytes
        Bytes to write to disk.

    Raises
    ------
    ValueError
        If the format is not supported.
    """
    if format is CompressionFormat.NONE:
        return data
    if format is CompressionFormat.ZSTD:
        return zstd.ZstdCompressor().compress(data)
    raise ValueError(f"Unsupported compression format: {format!r}")


def decode_payload(data: bytes) -> bytes:
    """
    Decode bytes read from disk, decompressing zstd frames when present.

    Raises
    ------
    ValueError
        If the payload looks compressed but cannot be decompressed.
    """
    if not is_zstd_payload(data):
        return data
    try:
        return zstd.ZstdDecompressor().decompress(data)
    except zstd.ZstdError as exc:
        raise ValueError(f"Corrupt zstd payload ({exc!s})") from exc
