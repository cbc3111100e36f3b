from typing import Iterator, Literal

from ..utils.io import LineParser
from .model import (
	HTTPAtom,
	HTTPHeaders,
	HTTPProcessingStatus,
	HTTPRequest,
	HTTPRequestLine,
	headername,
)

# Request heads are expected to be ASCII, raw UTF-8 paths are accepted and
# anything else is decoded byte-for-byte rather than failing the request.
HEAD_ENCODING: str = "utf8"
HEAD_FALLBACK_ENCODING: str = "latin-1"


def decodeHead(line: bytes) -> str:
	try:
		return line.decode(HEAD_ENCODING)
	except UnicodeDecodeError:
		return line.decode(HEAD_FALLBACK_ENCODING)


class MessageParser:
	"""Parses an HTTP request line."""

	__slots__ = ["line", "value"]

	def __init__(self) -> None:
		self.line: LineParser = LineParser()
		self.value: HTTPRequestLine | Literal[False] | None = None

	def flush(self) -> HTTPRequestLine | Literal[False] | None:
		res = self.value
		self.reset()
		return res

	def reset(self) -> "MessageParser":
		self.line.reset()
		self.value = None
		return self

	def feed(self, chunk: bytes, start: int = 0) -> tuple[bool | None, int]:
		"""Returns `True` when a line was parsed, its value being either
		a request line or `False` when the line is malformed."""
		line, read = self.line.feed(chunk, start)
		if line:
			ln = decodeHead(line)
			i = ln.find(" ")
			j = ln.rfind(" ")
			if i <= 0 or j <= i or not ln[j + 1 :].startswith("HTTP/"):
				self.value = False
			else:
				p: list[str] = ln[i + 1 : j].strip().split("?", 1)
				self.value = HTTPRequestLine(
					ln[0:i], p[0], p[1] if len(p) > 1 else "", ln[j + 1 :]
				)
			return True, read
		else:
			# Empty lines before the request line are ignored
			return None, read

	def __str__(self) -> str:
		return f"MessageParser({self.value})"


class HeadersParser:
	__slots__ = ["headers", "line"]

	def __init__(self) -> None:
		self.line: LineParser = LineParser()
		self.headers: dict[str, str] = {}

	def flush(self) -> HTTPHeaders:
		res = HTTPHeaders(self.headers)
		self.reset()
		return res

	def reset(self) -> "HeadersParser":
		self.line.reset()
		self.headers = {}
		return self

	def feed(
		self, chunk: bytes, start: int = 0
	) -> tuple[str | Literal[False] | None, int]:
		"""Feeds data from chunk, starting at `start` offset. Returns
		a value and the next start offset. When the value is `None`, no
		header has been extracted, when the value is `False` it's an empty
		line, and when the value is a string, a header was added."""
		line, read = self.line.feed(chunk, start)
		if line is None:
			return None, read
		elif line:
			ln: str = decodeHead(line)
			i = ln.find(":")
			if i != -1:
				n: str = headername(ln[:i].strip())
				self.headers[n] = ln[i + 1 :].strip()
				return n, read
			else:
				return None, read
		else:
			# An empty line denotes the end of headers
			return False, read

	def __str__(self) -> str:
		return f"HeadersParser({self.headers})"


class HTTPParser:
	"""A stateful HTTP request head parser. Bodies are not read: the
	connection is closed after each response."""

	def __init__(self) -> None:
		self.message: MessageParser = MessageParser()
		self.headers: HeadersParser = HeadersParser()
		self.parser: MessageParser | HeadersParser = self.message
		self.requestLine: HTTPRequestLine | None = None

	def reset(self) -> "HTTPParser":
		self.message.reset()
		self.headers.reset()
		self.parser = self.message
		self.requestLine = None
		return self

	def feed(self, chunk: bytes) -> Iterator[HTTPAtom]:
		size: int = len(chunk)
		offset: int = 0
		while offset < size:
			# The expectation here is that when we feed a chunk and it's
			# partially read, we don't need to re-feed it again. The underlying
			# parser will keep a buffer up until it is flushed.
			ln, read = self.parser.feed(chunk, offset)
			offset += read
			if ln is None:
				continue
			elif self.parser is self.message:
				line = self.message.flush()
				if not line:
					yield HTTPProcessingStatus.BadFormat
					self.reset()
					return
				self.requestLine = line
				yield line
				self.parser = self.headers
			elif ln is False:
				headers = self.headers.flush()
				yield headers
				if self.requestLine is not None:
					line = self.requestLine
					yield HTTPRequest(
						method=line.method,
						path=line.path,
						query=line.query,
						headers=headers,
						protocol=line.protocol,
					)
					yield HTTPProcessingStatus.Complete
				self.reset()
			else:
				# `ln` is the header name as a string there.
				pass


# EOF
