import socket
from pathlib import Path
from typing import Callable

import pytest

from dirserve.assets import Assets
from dirserve.http.model import (
	HTTPBodyWriter,
	HTTPHeaders,
	HTTPRequest,
	HTTPResponse,
	headername,
)
from dirserve.server import ServerOptions, SocketServer
from dirserve.services.files import FileService

ICON: bytes = b"\x00\x00\x01\x00" + b"icon" * 64
DATA: bytes = bytes(i % 251 for i in range(1000))


class BufferBodyWriter(HTTPBodyWriter):
	"""Collects what's written, keeping track of the chunks."""

	def __init__(
		self, size: int = 4096, isCancelled: Callable[[], bool] | None = None
	) -> None:
		super().__init__(size, isCancelled)
		self.chunks: list[bytes] = []

	def _writeBytes(self, chunk: bytes) -> None:
		self.chunks.append(chunk)

	@property
	def data(self) -> bytes:
		return b"".join(self.chunks)


def makeRequest(
	path: str, headers: dict[str, str] | None = None, method: str = "GET"
) -> HTTPRequest:
	return HTTPRequest(
		method,
		path,
		"",
		HTTPHeaders({headername(k): v for k, v in (headers or {}).items()}),
	)


def respond(
	service: FileService, path: str, headers: dict[str, str] | None = None
) -> tuple[HTTPResponse, bytes]:
	"""Processes a request and returns the response with its whole body."""
	res = service.process(makeRequest(path, headers))
	writer = BufferBodyWriter()
	try:
		writer.write(res.body)
	finally:
		res.close()
	return res, writer.data


def fetch(
	port: int, path: str, headers: dict[str, str] | None = None
) -> tuple[int, dict[str, str], bytes]:
	"""Sends a raw request to a live server and reads until it closes."""
	with socket.create_connection(("127.0.0.1", port), timeout=10) as s:
		lines = [f"GET {path} HTTP/1.1", "Host: 127.0.0.1"]
		lines += [f"{k}: {v}" for k, v in (headers or {}).items()]
		s.sendall(("\r\n".join(lines) + "\r\n\r\n").encode("ascii"))
		data = bytearray()
		while chunk := s.recv(65_536):
			data += chunk
	head, _, body = bytes(data).partition(b"\r\n\r\n")
	status_line, *header_lines = head.decode("latin-1").split("\r\n")
	res_headers = dict(_.split(": ", 1) for _ in header_lines)
	return int(status_line.split(" ")[1]), res_headers, body


@pytest.fixture
def root(tmp_path: Path) -> Path:
	base = tmp_path / "root"
	base.mkdir()
	(base / "data.bin").write_bytes(DATA)
	(base / "b.txt").write_text("bravo")
	(base / "a.txt").write_text("alpha")
	(base / "z").mkdir()
	(base / "z" / "inner.txt").write_bytes(b"x" * 2048)
	(base / "z" / "deeper").mkdir()
	(base / "z" / "deeper" / "more.txt").write_bytes(b"y" * 1024)
	return base.resolve()


@pytest.fixture
def service(root: Path) -> FileService:
	return FileService(root, assets=Assets.Make(icon=ICON))


@pytest.fixture
def server(service: FileService):
	srv = SocketServer(
		service,
		ServerOptions(
			host="127.0.0.1",
			port=0,
			polling=0.1,
			timeout=5.0,
			workers=4,
			queue=4,
			logRequests=False,
		),
	).start()
	yield srv
	srv.stop()
	srv.join(10)


# EOF
