from .decoder import QOIDecoder
from .encoder import QOIEncoder
from .errors import (
    DecodeLengthMismatchError,
    InvalidArgumentError,
    InvalidFormatError,
    QOIError,
)
from .qoi import QOI, PixelCache
from .utils import Image

__all__ = [
    "QOIEncoder",
    "QOIDecoder",
    "QOI",
    "PixelCache",
    "Image",
    "QOIError",
    "InvalidArgumentError",
    "InvalidFormatError",
    "DecodeLengthMismatchError",
]
