from dataclasses import dataclass, field


class QOI:
    # QOI Constants
    QOI_OP_INDEX = 0x00
    QOI_OP_DIFF  = 0x40
    QOI_OP_LUMA  = 0x80
    QOI_OP_RUN   = 0xC0
    QOI_OP_RGB   = 0xFE
    QOI_OP_RGBA  = 0xFF

    QOI_MASK_2   = 0xC0
    HEADER_SIZE = 14
    MAGIC = b'qoif'
    END_MARKER = b'\x00' * 7 + b'\x01'
    PIXELS_MAX = 400000000  # Safety limit (400MP)

    RGB = 3
    RGBA = 4
    SRGB = 0    # sRGB with linear alpha
    LINEAR = 1  # all channels linear

    CACHE_SIZE = 64
    RUN_MAX = 62
    START_PIXEL = bytes((0, 0, 0, 255))
    ZERO_PIXEL = bytes(4)

    @staticmethod
    def hash(pixel) -> int:
        """Calculates the index position for the color array."""
        r, g, b, a = pixel
        return (r * 3 + g * 5 + b * 7 + a * 11) % 64

    @staticmethod
    def signed_byte(value: int) -> int:
        """Truncate to 8 bits and read the result as two's complement (-128..127)."""
        return ((value + 128) & 0xFF) - 128


class PixelCache:
    """
    The running array of previously seen pixels.

    Each slot holds the last pixel whose hash landed there; a colliding pixel
    overwrites the previous occupant.
    """

    def __init__(self):
        self._slots = [QOI.ZERO_PIXEL] * QOI.CACHE_SIZE

    @classmethod
    def seeded(cls) -> "PixelCache":
        """A cache with the start pixel already stored, as the decoder expects."""
        cache = cls()
        cache.store(QOI.START_PIXEL)
        return cache

    def __getitem__(self, index: int) -> bytes:
        return self._slots[index]

    def __len__(self) -> int:
        return len(self._slots)

    def contains(self, pixel: bytes) -> bool:
        return self._slots[QOI.hash(pixel)] == pixel

    def store(self, pixel: bytes) -> int:
        index = QOI.hash(pixel)
        self._slots[index] = bytes(pixel)
        return index


@dataclass
class EncoderState:
    """Mutable bookkeeping for a single encode_data call."""

    previous: bytes = QOI.START_PIXEL
    cache: PixelCache = field(default_factory=PixelCache)
    run: int = 0
    chunks: list = field(default_factory=list)


@dataclass
class DecoderState:
    """Mutable bookkeeping for a single decode_data call."""

    total: int
    previous: bytes = QOI.START_PIXEL
    cache: PixelCache = field(default_factory=PixelCache.seeded)
    position: int = 0
    idx: int = 0
