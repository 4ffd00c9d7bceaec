class QOIError(Exception):
    """Base class for every error raised by qoi_codec."""


class InvalidArgumentError(QOIError, ValueError):
    """A caller passed a missing, malformed or out-of-range argument."""


class InvalidFormatError(QOIError, ValueError):
    """The bytes handed to the decoder are not a valid QOI file."""


class DecodeLengthMismatchError(InvalidFormatError):
    """The chunk stream does not describe exactly width * height pixels."""

    def __init__(self, msg: str, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(f"{msg} (expected {expected} pixels, got {actual})")
