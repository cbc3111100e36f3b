import pytest

from dirserve.http.ranges import ByteRange, parseRange


@pytest.mark.parametrize(
	"header,expected",
	[
		("bytes=0-99", ByteRange(0, 99)),
		("bytes=900-", ByteRange(900, None)),
		("bytes=-99", ByteRange(None, 99)),
		("Bytes = 10-20 ", ByteRange(10, 20)),
		("bytes=2000-2100", ByteRange(2000, 2100)),
	],
)
def test_parse_single_range(header: str, expected: ByteRange) -> None:
	assert parseRange(header) == expected


@pytest.mark.parametrize(
	"header",
	[
		None,
		"",
		"bytes",
		"bytes=",
		"bytes=-",
		"bytes=0-10,20-30",
		"items=0-10",
		"bytes=a-b",
		"bytes=-5-",
		"bytes=10",
		"bytes=١٢-٣٤",
	],
)
def test_unsupported_ranges_are_absent(header: str | None) -> None:
	assert parseRange(header) is None


def test_bounds_defaults() -> None:
	assert ByteRange(None, None).bounds(1000) == (0, 999)
	assert ByteRange(900, None).bounds(1000) == (900, 999)
	# An omitted start means the beginning of the file
	assert ByteRange(None, 99).bounds(1000) == (0, 99)


def test_bounds_unsatisfiable() -> None:
	assert ByteRange(2000, 2100).bounds(1000) is None
	assert ByteRange(0, 1000).bounds(1000) is None
	assert ByteRange(10, 5).bounds(1000) is None
	assert ByteRange(0, None).bounds(0) is None


def test_bounds_edges() -> None:
	assert ByteRange(999, 999).bounds(1000) == (999, 999)
	assert ByteRange(0, 999).bounds(1000) == (0, 999)


def test_str() -> None:
	assert str(ByteRange(0, 99)) == "bytes=0-99"
	assert str(ByteRange(5, None)) == "bytes=5-"


# EOF
