import logging
import struct

from . import arrays
from .errors import DecodeLengthMismatchError, InvalidArgumentError, InvalidFormatError
from .qoi import QOI, DecoderState
from .utils import Image

logger = logging.getLogger(__name__)


class QOIDecoder:
    """
    A class to decode QOI (Quite OK Image) files into raw pixel data.
    """

    # --- Header ---

    @staticmethod
    def decode_header(header: bytes) -> dict:
        """
        Parse and validate a 14 byte QOI header.

        :param header: exactly HEADER_SIZE bytes.
        :return: Dictionary containing width, height, channels and colorspace.
        """
        if header is None or len(header) != QOI.HEADER_SIZE:
            raise InvalidFormatError(
                f"QOI.decode: header must be {QOI.HEADER_SIZE} bytes"
            )

        # Unpack header using struct
        # > : Big Endian
        # 4s: 4-byte string (magic)
        # I : unsigned int (4 bytes)
        # B : unsigned char (1 byte)
        magic, width, height, channels, colorspace = struct.unpack(
            ">4sIIBB", bytes(header)
        )

        if magic != QOI.MAGIC:
            raise InvalidFormatError("QOI.decode: magic is not b'qoif'")

        if channels not in (QOI.RGB, QOI.RGBA):
            raise InvalidFormatError(
                "QOI.decode: header channels must be 3 or 4"
            )

        if colorspace not in (QOI.SRGB, QOI.LINEAR):
            raise InvalidFormatError(
                "QOI.decode: header colorspace must be 0 or 1"
            )

        if width == 0 or height == 0:
            raise InvalidFormatError("QOI.decode: header width and height must be positive")

        return {
            "width": width,
            "height": height,
            "channels": channels,
            "colorspace": colorspace,
        }

    # --- Chunks ---

    @staticmethod
    def mask_tag(chunk: int) -> int:
        """The 2-bit tag of a chunk's first byte."""
        return (chunk >> 6) & 0b11

    @staticmethod
    def decode_op_rgb(data: bytes, idx: int, alpha: int) -> bytes:
        """Read the 3 colour bytes following a QOI_OP_RGB tag at ``idx``."""
        return arrays.concat(arrays.extract(data, idx, 3), arrays.wrap(alpha))

    @staticmethod
    def decode_op_rgba(data: bytes, idx: int) -> bytes:
        """Read the 4 bytes following a QOI_OP_RGBA tag at ``idx``."""
        return arrays.extract(data, idx, 4)

    @staticmethod
    def decode_op_diff(previous: bytes, chunk: int) -> bytes:
        if QOIDecoder.mask_tag(chunk) != QOIDecoder.mask_tag(QOI.QOI_OP_DIFF):
            raise InvalidArgumentError("QOI_OP_DIFF: chunk has the wrong tag")

        # Extract 2-bit differences and subtract bias of 2
        dr = ((chunk >> 4) & 0x03) - 2
        dg = ((chunk >> 2) & 0x03) - 2
        db = (chunk & 0x03) - 2

        r, g, b, a = previous
        return bytes(((r + dr) & 0xFF, (g + dg) & 0xFF, (b + db) & 0xFF, a))

    @staticmethod
    def decode_op_luma(previous: bytes, chunk: bytes) -> bytes:
        luma_tag = QOIDecoder.mask_tag(QOI.QOI_OP_LUMA)
        if len(chunk) != 2 or QOIDecoder.mask_tag(chunk[0]) != luma_tag:
            raise InvalidArgumentError("QOI_OP_LUMA: expected a 2 byte luma chunk")

        dg = (chunk[0] & 0x3F) - 32
        dr = ((chunk[1] >> 4) & 0x0F) - 8 + dg
        db = (chunk[1] & 0x0F) - 8 + dg

        r, g, b, a = previous
        return bytes(((r + dr) & 0xFF, (g + dg) & 0xFF, (b + db) & 0xFF, a))

    @staticmethod
    def decode_op_run(buffer: list, pixel: bytes, chunk: int, position: int) -> int:
        """
        Write ``pixel`` into ``buffer`` as many times as the run chunk says.

        :return: the number of pixels written (1..62).
        """
        count = (chunk & 0x3F) + 1
        if position < 0 or position + count > len(buffer):
            raise DecodeLengthMismatchError(
                "QOI.decode: run overflows the image", len(buffer), position + count
            )
        buffer[position : position + count] = [pixel] * count
        return count

    # --- Chunk stream ---

    @staticmethod
    def decode_chunk(state: DecoderState, data: bytes, buffer: list) -> None:
        """Decode the chunk at ``state.idx`` and advance the state past it."""
        if state.position >= state.total:
            raise DecodeLengthMismatchError(
                "QOI.decode: data continues past the last pixel",
                state.total,
                state.position + 1,
            )

        chunk = data[state.idx]
        try:
            if chunk == QOI.QOI_OP_RGB:
                pixel = QOIDecoder.decode_op_rgb(data, state.idx + 1, state.previous[3])
                state.idx += 4
            elif chunk == QOI.QOI_OP_RGBA:
                pixel = QOIDecoder.decode_op_rgba(data, state.idx + 1)
                state.idx += 5
            else:
                tag = QOIDecoder.mask_tag(chunk)
                if tag == QOIDecoder.mask_tag(QOI.QOI_OP_INDEX):
                    pixel = state.cache[chunk & 0x3F]
                    state.idx += 1
                elif tag == QOIDecoder.mask_tag(QOI.QOI_OP_DIFF):
                    pixel = QOIDecoder.decode_op_diff(state.previous, chunk)
                    state.idx += 1
                elif tag == QOIDecoder.mask_tag(QOI.QOI_OP_LUMA):
                    pixel = QOIDecoder.decode_op_luma(
                        state.previous, arrays.extract(data, state.idx, 2)
                    )
                    state.idx += 2
                else:
                    state.position += QOIDecoder.decode_op_run(
                        buffer, state.previous, chunk, state.position
                    )
                    state.idx += 1
                    return
        except InvalidArgumentError as e:
            raise DecodeLengthMismatchError(
                "QOI.decode: data ends inside a chunk", state.total, state.position
            ) from e

        buffer[state.position] = pixel
        state.position += 1
        state.previous = pixel
        if not state.cache.contains(pixel):
            state.cache.store(pixel)

    @staticmethod
    def decode_data(data: bytes, width: int, height: int) -> list:
        """
        Decode a QOI chunk stream into a row-major list of RGBA pixels.

        :param data: the chunk stream, without header or end marker.
        :param width: image width in pixels.
        :param height: image height in pixels.
        :return: list of width * height 4-byte pixels.
        """
        if data is None:
            raise InvalidArgumentError("QOI.decode: data is None")
        if width <= 0 or height <= 0:
            raise InvalidArgumentError("QOI.decode: width and height must be positive")
        if width * height > QOI.PIXELS_MAX:
            raise InvalidArgumentError("QOI.decode: image is too large")

        data = bytes(data)
        state = DecoderState(total=width * height)
        buffer = [None] * state.total

        while state.idx < len(data):
            QOIDecoder.decode_chunk(state, data, buffer)

        if state.position != state.total:
            raise DecodeLengthMismatchError(
                "QOI.decode: Incomplete image", state.total, state.position
            )
        return buffer

    # --- File ---

    @staticmethod
    def _split(content: bytes) -> tuple[dict, bytes]:
        """Check the end marker and return the parsed header and the chunk stream."""
        if content is None:
            raise InvalidArgumentError("QOI.decode: content is None")
        if len(content) < QOI.HEADER_SIZE + len(QOI.END_MARKER):
            raise InvalidFormatError("QOI.decode: content is shorter than header and end marker")

        content = bytes(content)
        body_end = len(content) - len(QOI.END_MARKER)
        header = arrays.extract(content, 0, QOI.HEADER_SIZE)
        end = arrays.extract(content, body_end, len(QOI.END_MARKER))
        body = content[QOI.HEADER_SIZE : body_end]

        if not arrays.equals(end, QOI.END_MARKER):
            raise InvalidFormatError("QOI.decode: The end marker is missing")

        description = QOIDecoder.decode_header(header)
        if description["width"] * description["height"] > QOI.PIXELS_MAX:
            raise InvalidFormatError("QOI.decode: The image is too large")
        return description, body

    @staticmethod
    def decode_qoi_file(content: bytes) -> Image:
        """Decode a complete QOI file into an Image."""
        description, body = QOIDecoder._split(content)
        width = description["width"]
        height = description["height"]

        pixels = QOIDecoder.decode_data(body, width, height)
        logger.debug("decoded %dx%d image from %d chunk bytes", width, height, len(body))
        return Image(
            arrays.channels_to_image(pixels, height, width),
            description["channels"],
            description["colorspace"],
        )

    @staticmethod
    def decode(
        file_data: bytes,
        byte_offset: int = 0,
        byte_length: int = None,
        output_channels: int = None,
    ) -> dict:
        """
        Decode a QOI file into interleaved pixel bytes.

        :param byte_offset: where the file starts inside ``file_data``.
        :param byte_length: size of the file; defaults to the rest of ``file_data``.
        :param output_channels: 3 drops alpha, 4 keeps it; defaults to the header value.
        :return: the header fields plus ``data``, width * height * channels bytes.
        """
        if file_data is None:
            raise InvalidArgumentError("QOI.decode: file_data is None")

        # --- Handle Slicing ---
        if byte_length is None:
            byte_length = len(file_data) - byte_offset
        if byte_offset < 0 or byte_length < 0 or byte_offset + byte_length > len(file_data):
            raise InvalidArgumentError("QOI.decode: byte range is outside file_data")

        data = file_data[byte_offset : byte_offset + byte_length]
        description, body = QOIDecoder._split(data)

        if output_channels is None:
            output_channels = description["channels"]
        if output_channels not in (QOI.RGB, QOI.RGBA):
            raise InvalidArgumentError(
                "QOI.decode: output_channels must be 3 or 4"
            )

        pixels = QOIDecoder.decode_data(body, description["width"], description["height"])
        if output_channels == QOI.RGBA:
            result = b"".join(pixels)
        else:
            result = b"".join(pixel[:3] for pixel in pixels)

        logger.debug(
            "decoded %dx%d raw buffer from %d chunk bytes",
            description["width"],
            description["height"],
            len(body),
        )
        return {
            "width": description["width"],
            "height": description["height"],
            "colorspace": description["colorspace"],
            "channels": output_channels,
            "data": result,
        }
