"""
Placeholder images built from first principles.

No asset files and no imaging library: the PNG is assembled from raw
scanlines, deflated with zlib, and framed in CRC-checked chunks.
"""
import base64
import struct
import zlib

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"

PLACEHOLDER_WIDTH = 16
PLACEHOLDER_HEIGHT = 9
PLACEHOLDER_GRAY = 50

# Bit depth 8, color type 0 (grayscale), default compression/filter/interlace
_IHDR_TAIL = struct.pack(">BBBBB", 8, 0, 0, 0, 0)


def _png_chunk(chunk_type: bytes, data: bytes) -> bytes:
    """Length + type + data + CRC32 over (type + data)."""
    crc = zlib.crc32(chunk_type + data) & 0xFFFFFFFF
    return struct.pack(">I", len(data)) + chunk_type + data + struct.pack(">I", crc)


def make_placeholder_png(
    width: int = PLACEHOLDER_WIDTH,
    height: int = PLACEHOLDER_HEIGHT,
    gray: int = PLACEHOLDER_GRAY,
) -> bytes:
    """
    Build a flat single-color 8-bit grayscale PNG.

    Args:
        width: Image width in pixels
        height: Image height in pixels
        gray: Luminance 0-255 for every pixel

    Returns:
        Complete PNG file bytes
    """
    if width <= 0 or height <= 0:
        raise ValueError("Placeholder dimensions must be positive")
    if not 0 <= gray <= 255:
        raise ValueError("Gray level must be 0-255")

    # Each scanline: filter type 0 (None) followed by one byte per pixel
    scanline = b"\x00" + bytes([gray]) * width
    raw = scanline * height

    ihdr = struct.pack(">II", width, height) + _IHDR_TAIL
    return b"".join((
        PNG_SIGNATURE,
        _png_chunk(b"IHDR", ihdr),
        _png_chunk(b"IDAT", zlib.compress(raw, 9)),
        _png_chunk(b"IEND", b""),
    ))


# Served whenever a camera has never once loaded successfully
PLACEHOLDER_PNG = make_placeholder_png()
PLACEHOLDER_CONTENT_TYPE = "image/png"

# 1x1 transparent GIF for the redirect endpoint's failure path
TRANSPARENT_GIF = base64.b64decode(
    "R0lGODlhAQABAIAAAAAAAP///yH5BAEAAAAALAAAAAABAAEAAAIBRAA7"
)
TRANSPARENT_GIF_CONTENT_TYPE = "image/gif"
