import numpy as np
import pytest

from qoi_codec import QOI, Image, InvalidArgumentError, PixelCache, QOIEncoder

OPAQUE_BLACK = bytes((0, 0, 0, 255))

# Both hash to slot 0
COLLIDING_A = bytes((2, 1, 0, 255))
COLLIDING_B = bytes((0, 0, 29, 255))


def tag(chunk: bytes) -> int:
    return chunk[0] & QOI.QOI_MASK_2


def test_hash():
    assert QOI.hash(OPAQUE_BLACK) == 53
    assert QOI.hash(bytes((10, 20, 30, 255))) == 9
    assert QOI.hash(COLLIDING_A) == QOI.hash(COLLIDING_B) == 0
    for pixel in (bytes((255, 255, 255, 255)), bytes(4), bytes((1, 2, 3, 4))):
        assert 0 <= QOI.hash(pixel) < 64


def test_signed_byte():
    assert QOI.signed_byte(255) == -1
    assert QOI.signed_byte(-255) == 1
    assert QOI.signed_byte(128) == -128
    assert QOI.signed_byte(127) == 127


def test_pixel_cache_overwrites_on_collision():
    cache = PixelCache()
    assert len(cache) == 64
    assert cache[0] == bytes(4)

    assert cache.store(COLLIDING_A) == 0
    assert cache.contains(COLLIDING_A)
    cache.store(COLLIDING_B)
    assert cache[0] == COLLIDING_B
    assert not cache.contains(COLLIDING_A)


def test_seeded_cache():
    cache = PixelCache.seeded()
    assert cache[53] == OPAQUE_BLACK
    assert cache[0] == bytes(4)


def test_chunk_builders():
    assert QOIEncoder.op_rgb(bytes((1, 2, 3, 4))) == b"\xfe\x01\x02\x03"
    assert QOIEncoder.op_rgba(bytes((1, 2, 3, 4))) == b"\xff\x01\x02\x03\x04"
    assert QOIEncoder.op_index(63) == b"\x3f"
    assert QOIEncoder.op_diff((-2, 0, 1)) == bytes((0b01_00_10_11,))
    assert QOIEncoder.op_luma((2, 2, 2)) == b"\xa2\x88"
    assert QOIEncoder.op_luma((-8, 0, 7)) == b"\xa0\x0f"
    assert QOIEncoder.op_run(1) == b"\xc0"
    assert QOIEncoder.op_run(62) == b"\xfd"


@pytest.mark.parametrize(
    "builder, arg",
    [
        (QOIEncoder.op_index, 64),
        (QOIEncoder.op_index, -1),
        (QOIEncoder.op_diff, (2, 0, 0)),
        (QOIEncoder.op_diff, (0, -3, 0)),
        (QOIEncoder.op_luma, (0, 32, 0)),
        (QOIEncoder.op_luma, (8, 0, 0)),
        (QOIEncoder.op_luma, (0, 0, -9)),
        (QOIEncoder.op_run, 0),
        (QOIEncoder.op_run, 63),
        (QOIEncoder.op_rgb, b"\x00\x00\x00"),
    ],
)
def test_chunk_builders_reject_out_of_range(builder, arg):
    with pytest.raises(InvalidArgumentError):
        builder(arg)


def test_run_of_start_pixel():
    assert QOIEncoder.encode_data([OPAQUE_BLACK]) == b"\xc0"


def test_run_is_split_at_62():
    body = QOIEncoder.encode_data([OPAQUE_BLACK] * 130)
    assert body == b"\xfd\xfd\xc5"
    assert all(tag(bytes((b,))) == QOI.QOI_OP_RUN for b in body)


def test_repeated_pixel_after_literal():
    pixel = bytes((10, 20, 30, 255))
    assert QOIEncoder.encode_data([pixel, pixel]) == b"\xfe\x0a\x14\x1e\xc0"


def test_diff_boundary():
    body = QOIEncoder.encode_data([bytes((1, 1, 1, 255))])
    assert body == b"\x7f"
    assert tag(body) == QOI.QOI_OP_DIFF

    body = QOIEncoder.encode_data([bytes((2, 2, 2, 255))])
    assert body == b"\xa2\x88"
    assert tag(body) == QOI.QOI_OP_LUMA


def test_diff_wraps_around():
    # 0 - 1 wraps to 255, 255 + 1 wraps to 0
    body = QOIEncoder.encode_data([bytes((255, 0, 1, 255)), bytes((0, 255, 0, 255))])
    assert body[1:] == bytes((0b01_11_01_01,))


def test_literals():
    assert QOIEncoder.encode_data([bytes((100, 0, 0, 255))]) == b"\xfe\x64\x00\x00"
    assert QOIEncoder.encode_data([bytes((1, 1, 1, 128))]) == b"\xff\x01\x01\x01\x80"


def test_index_after_other_pixel():
    other = bytes((9, 9, 9, 255))
    body = QOIEncoder.encode_data([COLLIDING_A, other, COLLIDING_A])
    assert body[-1:] == QOIEncoder.op_index(0)


def test_index_collision_overwrites():
    body = QOIEncoder.encode_data([COLLIDING_A, COLLIDING_B, COLLIDING_A])
    assert body == (
        b"\xa1\x97"  # luma (2, 1, 0)
        b"\xfe\x00\x00\x1d"
        b"\xfe\x02\x01\x00"
    )


def test_zero_pixel_hits_initial_cache():
    body = QOIEncoder.encode_data([bytes(4)])
    assert body == b"\x00"


def test_encode_data_rejects_bad_pixels():
    with pytest.raises(InvalidArgumentError):
        QOIEncoder.encode_data(None)
    with pytest.raises(InvalidArgumentError):
        QOIEncoder.encode_data([b"\x00\x00\x00"])


def test_qoi_header():
    image = Image(np.zeros((3, 2), dtype=np.uint32), QOI.RGB, QOI.LINEAR)
    assert QOIEncoder.qoi_header(image) == (
        b"qoif" b"\x00\x00\x00\x02" b"\x00\x00\x00\x03" b"\x03\x01"
    )


@pytest.mark.parametrize(
    "image",
    [
        Image([[0]], channels=2),
        Image([[0]], colorspace=2),
        Image([[0, 0], [0]]),
        Image([]),
    ],
)
def test_qoi_header_rejects_invalid_image(image):
    with pytest.raises(InvalidArgumentError):
        QOIEncoder.qoi_header(image)


def test_qoi_file_framing():
    image = Image([[0xFF0A141E, 0xFF0A141E]])
    encoded = QOIEncoder.qoi_file(image)
    assert encoded[:14] == QOIEncoder.qoi_header(image)
    assert encoded[14:-8] == b"\xfe\x0a\x14\x1e\xc0"
    assert encoded[-8:] == QOI.END_MARKER


def test_encode_raw_rgb():
    encoded = QOIEncoder.encode(
        [1, 1, 1, 1, 1, 1],
        {"width": 2, "height": 1, "channels": 3, "colorspace": 0},
    )
    assert encoded[12:14] == b"\x03\x00"
    assert encoded[14:-8] == b"\x7f\xc0"


@pytest.mark.parametrize(
    "description",
    [
        {"width": 0, "height": 1, "channels": 4, "colorspace": 0},
        {"width": 1, "height": 1, "channels": 5, "colorspace": 0},
        {"width": 1, "height": 1, "channels": 4, "colorspace": 3},
        {"width": 2, "height": 1, "channels": 4, "colorspace": 0},
    ],
)
def test_encode_raw_rejects_invalid_description(description):
    with pytest.raises(InvalidArgumentError):
        QOIEncoder.encode(b"\x00\x00\x00\x00", description)


def test_encode_data_accepts_generator():
    pixels = [bytes((5, 5, 5, 255)), bytes((5, 5, 5, 255))]
    assert QOIEncoder.encode_data(p for p in pixels) == QOIEncoder.encode_data(pixels)
    assert QOIEncoder.encode_data(p for p in pixels) == b"\xa5\x88\xc0"


def test_single_repeat_is_flushed_as_run():
    a = bytes((10, 20, 30, 255))
    b = bytes((50, 60, 70, 255))
    c = bytes((90, 100, 110, 255))
    assert QOIEncoder.encode_data([a, b, b, c]) == (
        b"\xfe\x0a\x14\x1e" b"\xfe\x32\x3c\x46" b"\xc0" b"\xfe\x5a\x64\x6e"
    )
