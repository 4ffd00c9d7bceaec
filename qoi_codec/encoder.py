import logging
import struct

from . import arrays
from .errors import InvalidArgumentError
from .qoi import QOI, EncoderState
from .utils import Image

logger = logging.getLogger(__name__)


class QOIEncoder:
    # --- Header ---

    @staticmethod
    def qoi_header(image: Image) -> bytes:
        """
        Build the 14 byte QOI header for an image.

        :param image: Image whose matrix gives width and height.
        :return: magic, width, height, channels and colorspace, big-endian.
        """
        if image is None:
            raise InvalidArgumentError("QOI.encode: image is None")
        if image.channels not in (QOI.RGB, QOI.RGBA):
            raise InvalidArgumentError("QOI.encode: Invalid channels, must be 3 or 4")
        if image.colorspace not in (QOI.SRGB, QOI.LINEAR):
            raise InvalidArgumentError("QOI.encode: Invalid colorspace, must be 0 or 1")

        height = image.height
        width = image.width
        if width <= 0 or height <= 0:
            raise InvalidArgumentError("QOI.encode: image is empty")
        if any(len(row) != width for row in image.data):
            raise InvalidArgumentError("QOI.encode: image rows are ragged")
        if width * height > QOI.PIXELS_MAX:
            raise InvalidArgumentError("QOI.encode: image is too large")

        return QOI.MAGIC + struct.pack(
            ">IIBB", width, height, image.channels, image.colorspace
        )

    # --- Chunks ---

    @staticmethod
    def op_rgb(pixel: bytes) -> bytes:
        if pixel is None or len(pixel) != 4:
            raise InvalidArgumentError("QOI_OP_RGB: pixel must have 4 channels")
        return arrays.concat(arrays.wrap(QOI.QOI_OP_RGB), pixel[:3])

    @staticmethod
    def op_rgba(pixel: bytes) -> bytes:
        if pixel is None or len(pixel) != 4:
            raise InvalidArgumentError("QOI_OP_RGBA: pixel must have 4 channels")
        return arrays.concat(arrays.wrap(QOI.QOI_OP_RGBA), pixel)

    @staticmethod
    def op_index(index: int) -> bytes:
        if not (0 <= index < QOI.CACHE_SIZE):
            raise InvalidArgumentError(f"QOI_OP_INDEX: index {index} out of range")
        return arrays.wrap(QOI.QOI_OP_INDEX | index)

    @staticmethod
    def op_diff(diff) -> bytes:
        """
        Encode small deltas (-2..1 each) of red, green and blue.

        Each delta is stored with a bias of 2 in two bits:
        01 | dr | dg | db
        """
        if diff is None or len(diff) != 3:
            raise InvalidArgumentError("QOI_OP_DIFF: expected 3 deltas")
        if not all(-2 <= d <= 1 for d in diff):
            raise InvalidArgumentError(f"QOI_OP_DIFF: deltas {tuple(diff)} out of range")

        dr, dg, db = diff
        return arrays.wrap(
            QOI.QOI_OP_DIFF | ((dr + 2) << 4) | ((dg + 2) << 2) | (db + 2)
        )

    @staticmethod
    def op_luma(diff) -> bytes:
        """
        Encode the green delta (-32..31) and the red/blue deltas relative to it (-8..7).

        10 | dg + 32
        dr - dg + 8 | db - dg + 8
        """
        if diff is None or len(diff) != 3:
            raise InvalidArgumentError("QOI_OP_LUMA: expected 3 deltas")

        dr, dg, db = diff
        dr_dg = dr - dg
        db_dg = db - dg
        if not (-32 <= dg <= 31 and -8 <= dr_dg <= 7 and -8 <= db_dg <= 7):
            raise InvalidArgumentError(f"QOI_OP_LUMA: deltas {tuple(diff)} out of range")

        return arrays.concat_bytes(
            QOI.QOI_OP_LUMA | (dg + 32),
            ((dr_dg + 8) << 4) | (db_dg + 8),
        )

    @staticmethod
    def op_run(count: int) -> bytes:
        if not (1 <= count <= QOI.RUN_MAX):
            raise InvalidArgumentError(f"QOI_OP_RUN: run of {count} out of range")
        return arrays.wrap(QOI.QOI_OP_RUN | (count - 1))

    # --- Pixel stream ---

    @staticmethod
    def encode_pixel(state: EncoderState, pixel: bytes) -> None:
        """Append the chunk(s) for one pixel to ``state.chunks``."""
        prev = state.previous

        # Check for run
        if pixel == prev:
            state.run += 1
            if state.run == QOI.RUN_MAX:
                state.chunks.append(QOIEncoder.op_run(state.run))
                state.run = 0
            return

        # If we were in a run, end it before processing the new pixel
        if state.run > 0:
            state.chunks.append(QOIEncoder.op_run(state.run))
            state.run = 0

        state.previous = pixel

        # Check Index
        if state.cache.contains(pixel):
            state.chunks.append(QOIEncoder.op_index(QOI.hash(pixel)))
            return
        state.cache.store(pixel)

        if pixel[3] != prev[3]:
            state.chunks.append(QOIEncoder.op_rgba(pixel))
            return

        # Byte-wrapped differences, shifted to -128..127
        dr = QOI.signed_byte(pixel[0] - prev[0])
        dg = QOI.signed_byte(pixel[1] - prev[1])
        db = QOI.signed_byte(pixel[2] - prev[2])
        dr_dg = dr - dg
        db_dg = db - dg

        if -2 <= dr <= 1 and -2 <= dg <= 1 and -2 <= db <= 1:
            state.chunks.append(QOIEncoder.op_diff((dr, dg, db)))
        elif -32 <= dg <= 31 and -8 <= dr_dg <= 7 and -8 <= db_dg <= 7:
            state.chunks.append(QOIEncoder.op_luma((dr, dg, db)))
        else:
            state.chunks.append(QOIEncoder.op_rgb(pixel))

    @staticmethod
    def encode_data(pixels) -> bytes:
        """
        Encode a row-major stream of RGBA pixels into QOI chunks.

        :param pixels: iterable of 4-byte pixels.
        :return: the chunk stream, without header or end marker.
        """
        if pixels is None:
            raise InvalidArgumentError("QOI.encode: pixels is None")
        pixels = list(pixels)
        for pixel in pixels:
            if pixel is None or len(pixel) != 4:
                raise InvalidArgumentError("QOI.encode: every pixel needs 4 bytes")

        state = EncoderState()
        for pixel in pixels:
            QOIEncoder.encode_pixel(state, bytes(pixel))

        if state.run > 0:
            state.chunks.append(QOIEncoder.op_run(state.run))

        return arrays.concat(*state.chunks)

    # --- File ---

    @staticmethod
    def qoi_file(image: Image) -> bytes:
        """Encode an Image into a complete QOI file."""
        header = QOIEncoder.qoi_header(image)
        body = QOIEncoder.encode_data(arrays.image_to_channels(image.data))
        logger.debug(
            "encoded %dx%d image into %d chunk bytes",
            image.width,
            image.height,
            len(body),
        )
        return arrays.concat(header, body, QOI.END_MARKER)

    @staticmethod
    def encode(color_data, description: dict) -> bytes:
        """
        Encode interleaved RGB or RGBA bytes into a complete QOI file.

        :param color_data: width * height * channels bytes; RGB pixels get alpha 255.
        :param description: the header fields, keyed 'width', 'height', 'channels', 'colorspace'.
        """
        width = description.get("width")
        height = description.get("height")
        channels = description.get("channels")
        colorspace = description.get("colorspace")

        # --- Validation ---
        if not isinstance(width, int) or not (0 < width < 4294967296):
            raise InvalidArgumentError("QOI.encode: width must be between 1 and 2**32 - 1")

        if not isinstance(height, int) or not (0 < height < 4294967296):
            raise InvalidArgumentError("QOI.encode: height must be between 1 and 2**32 - 1")

        if channels not in (QOI.RGB, QOI.RGBA):
            raise InvalidArgumentError(
                "QOI.encode: channels must be 3 or 4"
            )

        if colorspace not in (QOI.SRGB, QOI.LINEAR):
            raise InvalidArgumentError(
                "QOI.encode: colorspace must be 0 or 1"
            )

        if width * height > QOI.PIXELS_MAX:
            raise InvalidArgumentError("QOI.encode: image is too large")

        if color_data is None or len(color_data) != width * height * channels:
            raise InvalidArgumentError("QOI.encode: color_data does not hold width * height * channels bytes")

        color_data = bytes(color_data)
        if channels == QOI.RGBA:
            pixels = [color_data[i : i + 4] for i in range(0, len(color_data), 4)]
        else:
            pixels = [
                color_data[i : i + 3] + b"\xff" for i in range(0, len(color_data), 3)
            ]

        header = QOI.MAGIC + struct.pack(">IIBB", width, height, channels, colorspace)
        body = QOIEncoder.encode_data(pixels)
        logger.debug("encoded %dx%d raw buffer into %d chunk bytes", width, height, len(body))
        return arrays.concat(header, body, QOI.END_MARKER)
