import zlib
from abc import ABC, abstractmethod


class BytesTransform(ABC):
	"""An abstract bytes transform."""

	@abstractmethod
	def feed(self, chunk: bytes) -> bytes:
		"""Feeds bytes to the transform, returns what's available so far."""

	@abstractmethod
	def flush(self) -> bytes:
		"""Ensures that the bytes transform is flushed, returning the remaining bytes."""


class GZipEncoder(BytesTransform):
	"""Encode bytes as Gzip"""

	__slots__ = ["compressor"]

	def __init__(self, compression_level: int = 6) -> None:
		super().__init__()
		self.compressor = zlib.compressobj(
			level=compression_level, wbits=zlib.MAX_WBITS | 16
		)

	def feed(self, chunk: bytes) -> bytes:
		return self.compressor.compress(chunk)

	def flush(self) -> bytes:
		return self.compressor.flush()


def gzipped(data: bytes, compression_level: int = 6) -> bytes:
	"""Returns the given bytes as a complete gzip stream."""
	encoder = GZipEncoder(compression_level)
	return encoder.feed(data) + encoder.flush()


def acceptsGzip(acceptEncoding: str | None) -> bool:
	"""Tells if an `Accept-Encoding` header value allows gzip. Any mention
	of the token is enough, quality values are not considered."""
	return acceptEncoding is not None and "gzip" in acceptEncoding.lower()


# EOF
