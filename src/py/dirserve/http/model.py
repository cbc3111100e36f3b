import os
from abc import ABC, abstractmethod
from enum import Enum
from pathlib import Path
from typing import BinaryIO, Callable, NamedTuple, TypeAlias, Union

from ..utils.io import DEFAULT_ENCODING
from .status import HTTP_STATUS

# Files are streamed in chunks of this size, so that memory use does not
# depend on the size of the file.
BUFFER_SIZE: int = 4_096

# -----------------------------------------------------------------------------
#
# HELPERS
#
# -----------------------------------------------------------------------------


HEADER_NAMES: dict[str, str] = {
	_.lower(): _
	for _ in (
		"Accept-Encoding",
		"Accept-Ranges",
		"Cache-Control",
		"Connection",
		"Content-Disposition",
		"Content-Encoding",
		"Content-Language",
		"Content-Length",
		"Content-Range",
		"Content-Type",
		"Date",
		"Expires",
		"Host",
		"Last-Modified",
		"Range",
		"User-Agent",
	)
}


def headername(name: str) -> str:
	"""Normalizes the header name as `Kebab-Case`. Only the names in
	`HEADER_NAMES` are looked up, as clients can send any name."""
	key: str = name.lower()
	return HEADER_NAMES.get(key) or "-".join(_.capitalize() for _ in key.split("-"))


# -----------------------------------------------------------------------------
#
# DATA MODEL
#
# -----------------------------------------------------------------------------


class HTTPRequestLine(NamedTuple):
	"""Represents a request status line"""

	method: str
	path: str
	query: str
	protocol: str


class HTTPHeaders(NamedTuple):
	"""Wraps HTTP headers, keyed by their normalized name."""

	headers: dict[str, str]


class HTTPProcessingStatus(Enum):
	"""Internal parser/processor state management"""

	Processing = 0
	Complete = 2
	Timeout = 10
	NoData = 11
	BadFormat = 12
	TooLarge = 13


# Type alias for the parser would produce
HTTPAtom: TypeAlias = Union[
	HTTPRequestLine,
	HTTPHeaders,
	HTTPProcessingStatus,
	"HTTPRequest",
]

# -----------------------------------------------------------------------------
#
# ERRORS
#
# -----------------------------------------------------------------------------


class HTTPStreamError(Exception):
	"""Raised when a response body cannot be sent as announced, the
	connection is then dropped."""


class HTTPStreamCancelled(HTTPStreamError):
	"""Raised between two chunks when the server is shutting down."""


# -----------------------------------------------------------------------------
#
# BODY
#
# -----------------------------------------------------------------------------


class HTTPBodyBlob(NamedTuple):
	"""Represents a whole body as bytes."""

	payload: bytes = b""
	length: int = 0

	@staticmethod
	def FromBytes(data: bytes) -> "HTTPBodyBlob":
		return HTTPBodyBlob(payload=data, length=len(data))


class HTTPBodyFile(NamedTuple):
	"""Represents a span of a file as an HTTP body. The file may already be
	open, in which case the writer reads from it."""

	path: Path
	start: int = 0
	size: int | None = None
	file: BinaryIO | None = None

	@property
	def length(self) -> int:
		if self.size is not None:
			return self.size
		elif self.file is not None:
			return os.fstat(self.file.fileno()).st_size - self.start
		else:
			return self.path.stat().st_size - self.start


# The different types of bodies that are managed
THTTPBody: TypeAlias = HTTPBodyBlob | HTTPBodyFile


class HTTPBodyWriter(ABC):
	"""A generic writer for bodies. File bodies are sent chunk by chunk,
	and the `isCancelled` predicate is checked before each chunk."""

	__slots__ = ["size", "isCancelled", "written"]

	def __init__(
		self,
		size: int = BUFFER_SIZE,
		isCancelled: Callable[[], bool] | None = None,
	) -> None:
		self.size: int = size
		self.isCancelled: Callable[[], bool] | None = isCancelled
		self.written: int = 0

	def write(self, body: THTTPBody | bytes | None) -> bool:
		"""Writes the given type of body."""
		if isinstance(body, bytes):
			return self._write(body)
		elif isinstance(body, HTTPBodyBlob):
			return self._write(body.payload)
		elif isinstance(body, HTTPBodyFile):
			return self._writeFile(body)
		elif body is None:
			return True
		else:
			raise ValueError(f"Unsupported body format: {body}")

	def _write(self, chunk: bytes) -> bool:
		if chunk:
			self._writeBytes(chunk)
			self.written += len(chunk)
		return True

	def _writeFile(self, body: HTTPBodyFile) -> bool:
		if body.file is None:
			with open(body.path, "rb") as f:
				return self._writeSpan(f, body.start, body.length)
		else:
			return self._writeSpan(body.file, body.start, body.length)

	def _writeSpan(self, file: BinaryIO, start: int, length: int) -> bool:
		file.seek(start)
		remaining: int = length
		while remaining > 0:
			if self.isCancelled and self.isCancelled():
				raise HTTPStreamCancelled(
					f"Stream cancelled with {remaining} bytes remaining"
				)
			chunk = file.read(min(self.size, remaining))
			if not chunk:
				raise HTTPStreamError(
					f"File ended with {remaining} bytes remaining out of {length}"
				)
			self._write(chunk)
			remaining -= len(chunk)
		return True

	@abstractmethod
	def _writeBytes(self, chunk: bytes) -> None: ...


# -----------------------------------------------------------------------------
#
# REQUESTS
#
# -----------------------------------------------------------------------------


class HTTPRequest:
	"""Represents an HTTP request. Only the head is kept, as every method
	is processed as a read."""

	__slots__ = [
		"protocol",
		"method",
		"path",
		"query",
		"_headers",
	]

	def __init__(
		self,
		method: str,
		path: str,
		query: str,
		headers: HTTPHeaders,
		protocol: str = "HTTP/1.1",
	):
		self.method: str = method
		self.path: str = path
		self.query: str = query
		self.protocol: str = protocol
		self._headers: HTTPHeaders = headers

	@property
	def headers(self) -> dict[str, str]:
		return self._headers.headers

	def header(self, name: str) -> str | None:
		return self._headers.headers.get(headername(name))

	@property
	def host(self) -> str:
		return (self.header("Host") or "").strip()

	def __str__(self) -> str:
		return f"Request({self.method} {self.path}{f'?{self.query}' if self.query else ''} {self.headers})"


# -----------------------------------------------------------------------------
#
# RESPONSE
#
# -----------------------------------------------------------------------------


class HTTPResponse:
	"""An HTTP response."""

	@staticmethod
	def Create(
		content: str | bytes | HTTPBodyFile | None = None,
		contentType: str | None = None,
		headers: dict[str, str] | None = None,
		status: int = 200,
		message: str | None = None,
		protocol: str = "HTTP/1.1",
	) -> "HTTPResponse":
		"""Factory method to create HTTP response objects. The
		`Content-Length` header is always set from the body."""
		body: THTTPBody | None = None
		if content is None:
			pass
		elif isinstance(content, str):
			body = HTTPBodyBlob.FromBytes(content.encode(DEFAULT_ENCODING))
		elif isinstance(content, bytes):
			body = HTTPBodyBlob.FromBytes(content)
		elif isinstance(content, HTTPBodyFile):
			body = content
		else:
			raise ValueError(f"Unsupported content {type(content)}:{content}")
		content_length: int = 0 if body is None else body.length
		updated_headers: dict[str, str] = {}
		for k, v in (headers or {}).items():
			updated_headers[headername(k)] = v
		if contentType is not None:
			updated_headers["Content-Type"] = contentType
		updated_headers["Content-Length"] = str(content_length)
		return HTTPResponse(
			status=status,
			message=message or HTTP_STATUS.get(status, "Unknown status"),
			headers=HTTPHeaders(updated_headers),
			body=body,
			protocol=protocol,
		)

	__slots__ = [
		"protocol",
		"status",
		"message",
		"headers",
		"body",
		"_onClose",
	]

	def __init__(
		self,
		protocol: str,
		status: int,
		message: str | None,
		headers: HTTPHeaders,
		body: THTTPBody | None = None,
	):
		self.protocol: str = protocol
		self.status: int = status
		self.message: str | None = message
		self.headers: HTTPHeaders = headers
		self.body: THTTPBody | None = body
		self._onClose: Callable[[HTTPResponse], None] | None = None

	def getHeader(self, name: str) -> str | None:
		return self.headers.headers.get(headername(name))

	def setHeader(self, name: str, value: str | int | None) -> "HTTPResponse":
		if value is None:
			self.headers.headers.pop(headername(name), None)
		else:
			self.headers.headers[headername(name)] = str(value)
		return self

	def head(self) -> bytes:
		"""Serializes the head as a payload."""
		message: str = self.message or HTTP_STATUS.get(self.status, "Unknown status")
		lines: list[str] = []
		for k, v in self.headers.headers.items():
			if "\r" in v or "\n" in v:
				raise ValueError(f"Header {k} spans multiple lines: {v!r}")
			lines.append(f"{headername(k)}: {v}")
		lines.insert(0, f"{self.protocol} {self.status} {message}")
		lines.append("")
		lines.append("")
		# NOTE: Header values are kept ASCII and single-line by the responders
		# (see `disposition`), anything else is a bug we want to surface.
		return "\r\n".join(lines).encode("ascii")

	def onClose(
		self, callback: Callable[["HTTPResponse"], None] | None
	) -> "HTTPResponse":
		self._onClose = callback
		return self

	def close(self) -> None:
		"""Runs the close callback once, typically releasing an open file."""
		callback, self._onClose = self._onClose, None
		if callback:
			callback(self)

	def __str__(self) -> str:
		return f"Response({self.protocol} {self.status} {self.message} {self.headers} {self.body})"


# EOF
