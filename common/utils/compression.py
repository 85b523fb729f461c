from __future__ import annotations

import logging

import zstandard

_LOG = logging.getLogger(__name__)


class CompressionError(Exception):
    pass


class ZstdCodec:
    """Compression service for the cached ranges, frames are written with the content size."""

    def __init__(self, level: int = 3) -> None:
        self._level = level
        self._compressor = zstandard.ZstdCompressor(level=level, write_content_size=True)
        self._decompressor = zstandard.ZstdDecompressor()

    @property
    def level(self) -> int:
        return self._level

    def compress(self, data: bytes) -> bytes:
        try:
            return self._compressor.compress(data)
        except zstandard.ZstdError as exc:
            raise CompressionError(f"fail to compress {len(data)} bytes: {exc}") from exc

    def decompress(self, data: bytes) -> bytes:
        if not data:
            raise CompressionError("empty input for decompression")

        try:
            return self._decompressor.decompress(data)
        except zstandard.ZstdError as exc:
            raise CompressionError(f"fail to decompress {len(data)} bytes: {exc}") from exc

    def validate(self, data: bytes) -> None:
        """Checks the frame header and the whole frame, raises CompressionError on a bad frame."""
        if not data:
            raise CompressionError("empty compressed frame")

        try:
            params = zstandard.get_frame_parameters(data)
        except zstandard.ZstdError as exc:
            raise CompressionError(f"bad zstd frame header: {exc}") from exc

        result = self.decompress(data)
        if (params.content_size not in (0, zstandard.CONTENTSIZE_UNKNOWN)) and (len(result) != params.content_size):
            raise CompressionError(f"wrong content size {len(result)}, expected {params.content_size}")

    def is_valid(self, data: bytes) -> bool:
        try:
            self.validate(data)
            return True
        except CompressionError as exc:
            _LOG.debug("invalid compressed data: %s", str(exc))
            return False
