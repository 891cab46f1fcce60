import pytest

from narrator.utils import ByteRange, parse_byte_range


@pytest.mark.parametrize(
    ("header", "expected"),
    [
        ("bytes=100-199", ByteRange(100, 199)),
        ("bytes=0-0", ByteRange(0, 0)),
        ("bytes=900-", ByteRange(900, 999)),
        ("bytes=-100", ByteRange(900, 999)),
        ("bytes=-5000", ByteRange(0, 999)),
        ("bytes=500-5000", ByteRange(500, 999)),
        ("BYTES = 10 - 19", ByteRange(10, 19)),
    ],
)
def test_satisfiable_ranges(header, expected) -> None:
    assert parse_byte_range(header, 1000) == expected


@pytest.mark.parametrize(
    "header",
    [None, "", "bytes=", "bytes=-", "bytes=abc", "items=0-10", "bytes=0-10,20-30", "bytes=1000-", "bytes=200-100", "bytes=-0"],
)
def test_unusable_ranges_fall_back_to_full_body(header) -> None:
    assert parse_byte_range(header, 1000) is None


def test_content_range_header() -> None:
    byte_range = ByteRange(100, 199)
    assert byte_range.length == 100
    assert byte_range.content_range(1000) == "bytes 100-199/1000"


def test_empty_resource_has_no_ranges() -> None:
    assert parse_byte_range("bytes=0-10", 0) is None
