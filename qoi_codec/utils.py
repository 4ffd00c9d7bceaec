from dataclasses import dataclass

import numpy as np
from PIL import Image as PILImage

from .errors import InvalidArgumentError
from .qoi import QOI


@dataclass
class Image:
    """
    An image as handed to and returned by the codec.

    ``data`` is a height x width matrix of 32-bit integers packed as ARGB.
    ``channels`` and ``colorspace`` are only recorded in the header; they do
    not change how pixels are encoded.
    """

    data: np.ndarray
    channels: int = QOI.RGBA
    colorspace: int = QOI.SRGB

    @property
    def height(self) -> int:
        return len(self.data)

    @property
    def width(self) -> int:
        return len(self.data[0]) if len(self.data) else 0

    @classmethod
    def from_array(cls, array: np.ndarray, colorspace: int = QOI.SRGB) -> "Image":
        """Pack a (height, width, 3|4) uint8 array into an ARGB matrix."""
        array = np.asarray(array)
        if array.ndim != 3 or array.shape[2] not in (QOI.RGB, QOI.RGBA):
            raise InvalidArgumentError(
                f"Image.from_array: expected shape (h, w, 3|4), got {array.shape}"
            )

        channels = array.shape[2]
        pixels = array.astype(np.uint32)
        r, g, b = pixels[..., 0], pixels[..., 1], pixels[..., 2]
        a = pixels[..., 3] if channels == QOI.RGBA else np.uint32(255)
        data = (a << 24) | (r << 16) | (g << 8) | b
        return cls(data.astype(np.uint32), channels, colorspace)

    def to_array(self) -> np.ndarray:
        """Unpack into a (height, width, channels) uint8 array."""
        data = np.asarray(self.data, dtype=np.int64) & 0xFFFFFFFF
        planes = [(data >> shift) & 0xFF for shift in (16, 8, 0, 24)]
        return np.stack(planes[: self.channels], axis=-1).astype(np.uint8)

    @classmethod
    def from_pil(cls, img: PILImage.Image, colorspace: int = QOI.SRGB) -> "Image":
        # Convert to RGB or RGBA
        if img.mode != "RGBA":
            img = img.convert("RGB")
        return cls.from_array(np.array(img), colorspace)

    def to_pil(self) -> PILImage.Image:
        return PILImage.fromarray(self.to_array())
