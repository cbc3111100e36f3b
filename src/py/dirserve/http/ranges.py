from typing import NamedTuple

# SEE: https://httpwg.org/specs/rfc9110.html#field.range
# Only a single `bytes=<start>?-<end>?` range is supported. Note that an
# omitted start means `0` here, not a suffix length as in the RFC.

RANGE_UNIT: str = "bytes"


class ByteRange(NamedTuple):
	"""A parsed `Range` header, with inclusive bounds that may be omitted."""

	start: int | None = None
	end: int | None = None

	def bounds(self, length: int) -> tuple[int, int] | None:
		"""Resolves the range against a resource of the given length,
		returning the inclusive `(start, end)` offsets or `None` when the
		range can't be satisfied."""
		start: int = 0 if self.start is None else self.start
		end: int = length - 1 if self.end is None else self.end
		if 0 <= start <= end < length:
			return (start, end)
		else:
			return None

	def __str__(self) -> str:
		return f"{RANGE_UNIT}={'' if self.start is None else self.start}-{'' if self.end is None else self.end}"


def parseOffset(text: str) -> int | None | bool:
	"""Parses a range bound, returning `None` when omitted and `False`
	when invalid."""
	text = text.strip()
	if not text:
		return None
	elif text.isdigit() and text.isascii():
		return int(text)
	else:
		return False


def parseRange(value: str | None) -> ByteRange | None:
	"""Parses the value of a `Range` header. Anything that is not a single
	byte range (another unit, multiple ranges, garbage) yields `None` and is
	treated as if the header was absent."""
	if not value:
		return None
	unit, sep, ranges = value.strip().partition("=")
	if not sep or unit.strip().lower() != RANGE_UNIT:
		return None
	if "," in ranges:
		return None
	first, dash, last = ranges.partition("-")
	if not dash:
		return None
	start = parseOffset(first)
	end = parseOffset(last)
	if start is False or end is False:
		return None
	elif start is None and end is None:
		return None
	else:
		return ByteRange(
			start if isinstance(start, int) else None,
			end if isinstance(end, int) else None,
		)


# EOF
