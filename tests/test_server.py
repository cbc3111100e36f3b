import errno
import select
import socket
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import pytest

from conftest import DATA, fetch
from dirserve import server as server_module
from dirserve.assets import Assets
from dirserve.server import ServerOptions, SocketServer, run
from dirserve.services.files import FileService


def test_file(server: SocketServer) -> None:
	status, headers, body = fetch(server.port, "/data.bin")
	assert status == 200
	assert body == DATA
	assert headers["Content-Length"] == "1000"
	assert headers["Connection"] == "close"


def test_range(server: SocketServer) -> None:
	status, headers, body = fetch(server.port, "/data.bin", {"Range": "bytes=0-99"})
	assert status == 206
	assert headers["Content-Range"] == "bytes 0-99/1000"
	assert body == DATA[:100]


def test_unsatisfiable_range(server: SocketServer) -> None:
	status, headers, body = fetch(
		server.port, "/data.bin", {"Range": "bytes=2000-2100"}
	)
	assert status == 416
	assert headers["Content-Range"] == "bytes */1000"
	assert body == b""


def test_listing(server: SocketServer) -> None:
	status, headers, body = fetch(server.port, "/z/")
	assert status == 200
	assert headers["Content-Type"] == "text/html; charset=UTF-8"
	assert b"Directory of /z/" in body
	assert b'href="//127.0.0.1/z/inner.txt"' in body


def test_error_page(server: SocketServer) -> None:
	status, _, body = fetch(server.port, "/../../etc/passwd")
	assert status == 200
	assert b"Not Found" in body


def test_concurrent_downloads(server: SocketServer, root: Path) -> None:
	forward = bytes(range(256)) * 8192
	backward = bytes(reversed(range(256))) * 8192
	(root / "forward.bin").write_bytes(forward)
	(root / "backward.bin").write_bytes(backward)
	paths = ["/forward.bin", "/backward.bin"] * 4
	with ThreadPoolExecutor(max_workers=len(paths)) as pool:
		results = list(pool.map(lambda _: fetch(server.port, _), paths))
	for path, (status, headers, body) in zip(paths, results):
		assert status == 200
		assert headers["Content-Length"] == str(len(forward))
		assert body == (forward if path == "/forward.bin" else backward)


def test_idle_client_does_not_block(server: SocketServer) -> None:
	with socket.create_connection(("127.0.0.1", server.port), timeout=10):
		status, _, body = fetch(server.port, "/a.txt")
	assert status == 200
	assert body == b"alpha"


def test_slow_head_is_dropped(service: FileService) -> None:
	srv = SocketServer(
		service,
		ServerOptions(
			host="127.0.0.1",
			port=0,
			polling=0.1,
			timeout=1.0,
			workers=1,
			queue=0,
			logRequests=False,
		),
	).start()
	try:
		started = time.monotonic()
		closed = False
		with socket.create_connection(("127.0.0.1", srv.port), timeout=10) as s:
			# One byte every 0.25s, each read being well within the timeout
			for i in range(40):
				try:
					s.sendall(b"GET /a.txt HTTP/1.1\r\nX-Slow: "[i : i + 1] or b"x")
					readable, _, _ = select.select([s], [], [], 0.25)
					if readable and s.recv(1024) == b"":
						closed = True
				except OSError:
					closed = True
				if closed:
					break
		assert closed
		assert time.monotonic() - started < 3.0
		# The only worker is available again
		status, _, body = fetch(srv.port, "/a.txt")
		assert status == 200
		assert body == b"alpha"
	finally:
		srv.stop()
		srv.join(10)


def test_bad_request_is_dropped(server: SocketServer) -> None:
	with socket.create_connection(("127.0.0.1", server.port), timeout=10) as s:
		s.sendall(b"garbage\r\n")
		assert s.recv(1024) == b""
	# The server keeps serving
	status, _, _ = fetch(server.port, "/a.txt")
	assert status == 200


def test_stop_cancels_transfers(server: SocketServer, root: Path) -> None:
	size = 32 * 1024 * 1024
	(root / "huge.bin").write_bytes(b"\x00" * size)
	with socket.create_connection(("127.0.0.1", server.port), timeout=10) as s:
		s.sendall(b"GET /huge.bin HTTP/1.1\r\nHost: 127.0.0.1\r\n\r\n")
		received = len(s.recv(65_536))
		server.stop()
		while chunk := s.recv(65_536):
			received += len(chunk)
	assert server.join(10)
	assert received < size
	assert not server.state.isRunning


def test_bind_failure_raises_original_error(
	monkeypatch: pytest.MonkeyPatch, service: FileService
) -> None:
	class BusySocket(socket.socket):
		def bind(self, address: object) -> None:
			raise OSError(errno.EADDRINUSE, "Address already in use")

	monkeypatch.setattr(server_module.socket, "socket", BusySocket)
	with pytest.raises(OSError) as e:
		SocketServer(service, ServerOptions(host="127.0.0.1", port=8000)).bind()
	assert e.value.errno == errno.EADDRINUSE
	assert e.value.__cause__ is None


def test_run_stops_on_condition(
	monkeypatch: pytest.MonkeyPatch, root: Path
) -> None:
	# Signal handlers are process wide, they're left untouched here.
	monkeypatch.setattr(server_module, "signal", lambda *_: None)
	calls: list[int] = []

	def condition() -> bool:
		calls.append(1)
		return len(calls) < 3

	srv = run(
		FileService(root, assets=Assets.Make()),
		host="127.0.0.1",
		port=0,
		polling=0.1,
		logRequests=False,
		condition=condition,
	)
	assert not srv.state.isRunning
	assert srv.join(1)
	assert not any(_.name == "dirserve-accept" and _.is_alive() for _ in threading.enumerate())


# EOF
