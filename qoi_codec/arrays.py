import struct
from typing import Sequence

import numpy as np

from .errors import InvalidArgumentError

_INT32 = struct.Struct(">i")


def equals(a1, a2) -> bool:
    """
    Compare two (possibly nested) byte arrays element by element.

    :param a1: First array, or None.
    :param a2: Second array, or None.
    :return: True if both are None or both hold the same elements, False otherwise.
    :raises InvalidArgumentError: if exactly one of the arrays is None.
    """
    if (a1 is None) != (a2 is None):
        raise InvalidArgumentError("equals: cannot compare an array with None")
    if a1 is None:
        return True
    if len(a1) != len(a2):
        return False

    for x, y in zip(a1, a2):
        if isinstance(x, (int, np.integer)) or isinstance(y, (int, np.integer)):
            if x != y:
                return False
        elif not equals(x, y):
            return False
    return True


def wrap(value: int) -> bytes:
    """Return a single byte value as a one-byte array."""
    return concat_bytes(value)


def to_int(data: bytes) -> int:
    """Interpret 4 bytes as a big-endian signed 32-bit integer."""
    if data is None or len(data) != 4:
        raise InvalidArgumentError("to_int: expected exactly 4 bytes")
    return _INT32.unpack(bytes(data))[0]


def from_int(value: int) -> bytes:
    """Inverse of to_int: big-endian bytes of a signed 32-bit integer."""
    if not (-(2**31) <= value < 2**31):
        raise InvalidArgumentError(f"from_int: {value} does not fit in 32 bits")
    return _INT32.pack(value)


def concat_bytes(*values: int) -> bytes:
    """
    Concatenate single byte values into one array.

    Values may be given unsigned (0..255) or as signed bytes (-128..127).
    """
    result = bytearray()
    for value in values:
        if value is None:
            raise InvalidArgumentError("concat_bytes: None is not a byte")
        if not (-128 <= value <= 255):
            raise InvalidArgumentError(f"concat_bytes: {value} is not a byte")
        result.append(value & 0xFF)
    return bytes(result)


def concat(*arrays: bytes) -> bytes:
    """Concatenate byte arrays end to end, preserving order."""
    for array in arrays:
        if array is None:
            raise InvalidArgumentError("concat: cannot concatenate None")
    return b"".join(bytes(array) for array in arrays)


def extract(data: bytes, start: int, length: int) -> bytes:
    """Return a copy of ``length`` bytes of ``data`` beginning at ``start``."""
    if data is None:
        raise InvalidArgumentError("extract: input is None")
    if start < 0 or length <= 0 or start + length > len(data):
        raise InvalidArgumentError(
            f"extract: cannot take {length} bytes at {start} from {len(data)} bytes"
        )
    return bytes(data[start : start + length])


def partition(data: bytes, *sizes: int) -> list[bytes]:
    """Split ``data`` into consecutive slices of the given sizes."""
    if data is None:
        raise InvalidArgumentError("partition: input is None")
    if sum(sizes) != len(data):
        raise InvalidArgumentError(
            f"partition: sizes sum to {sum(sizes)}, input has {len(data)} bytes"
        )

    parts = []
    cursor = 0
    for size in sizes:
        parts.append(extract(data, cursor, size))
        cursor += size
    return parts


def image_to_channels(image) -> list[bytes]:
    """
    Flatten an image matrix into a row-major list of RGBA pixels.

    :param image: height x width matrix (numpy array or nested sequences) of
                  32-bit integers packed as ARGB. Signed and unsigned values are accepted.
    :return: list of 4-byte pixels in RGBA order.
    """
    if image is None or len(image) == 0:
        raise InvalidArgumentError("image_to_channels: image is empty")

    width = None
    for row in image:
        if row is None:
            raise InvalidArgumentError("image_to_channels: image has a missing row")
        if width is None:
            width = len(row)
        elif len(row) != width:
            raise InvalidArgumentError("image_to_channels: image rows are ragged")
    if width == 0:
        raise InvalidArgumentError("image_to_channels: image has no columns")

    packed = (np.asarray(image, dtype=np.int64) & 0xFFFFFFFF).astype(">u4")
    argb = packed.reshape(-1).view(np.uint8).reshape(-1, 4)
    # A,R,G,B -> R,G,B,A
    rgba = np.roll(argb, -1, axis=1)
    return [pixel.tobytes() for pixel in rgba]


def channels_to_image(pixels: Sequence[bytes], height: int, width: int) -> np.ndarray:
    """
    Rebuild the image matrix from a row-major list of RGBA pixels.

    :return: uint32 array of shape (height, width), packed as ARGB.
    """
    if pixels is None or height <= 0 or width <= 0:
        raise InvalidArgumentError("channels_to_image: invalid dimensions")
    if len(pixels) != width * height:
        raise InvalidArgumentError(
            f"channels_to_image: {len(pixels)} pixels do not fill {width}x{height}"
        )
    for pixel in pixels:
        if pixel is None or len(pixel) != 4:
            raise InvalidArgumentError("channels_to_image: every pixel needs 4 bytes")

    rgba = np.frombuffer(b"".join(bytes(p) for p in pixels), dtype=np.uint8)
    argb = np.ascontiguousarray(np.roll(rgba.reshape(-1, 4), 1, axis=1))
    return argb.view(">u4").reshape(height, width).astype(np.uint32)
