import errno
import socket
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from signal import SIGINT, SIGTERM, signal
from typing import Callable, NamedTuple

from .config import HOST, LOG_REQUESTS, PORT, QUEUE, WORKERS
from .http.model import (
	BUFFER_SIZE,
	HTTPBodyWriter,
	HTTPProcessingStatus,
	HTTPRequest,
	HTTPResponse,
	HTTPStreamCancelled,
	HTTPStreamError,
)
from .http.parser import HTTPParser
from .services.files import FileService
from .utils.logging import error, event, exception, info, warning


@dataclass(slots=True)
class ServerState:
	"""The shutdown signal, shared by the accept loop and the workers."""

	stopped: threading.Event = field(default_factory=threading.Event)

	@property
	def isRunning(self) -> bool:
		return not self.stopped.is_set()

	def stop(self) -> None:
		if self.isRunning:
			info("Server stopping…")
		self.stopped.set()


class ServerOptions(NamedTuple):
	host: str = HOST
	port: int = PORT
	backlog: int = 128
	# Socket timeout for clients, in seconds
	timeout: float = 10.0
	# This is the polling timeout for accepting new requests, it bounds the
	# time it takes for the loop to notice a shutdown.
	polling: float = 1.0
	readsize: int = 4_096
	# Requests with a larger head are dropped
	maxHeadSize: int = 64_000
	# Size of the chunks when streaming files
	chunksize: int = BUFFER_SIZE
	# Connections processed concurrently, and accepted connections waiting
	# for a worker. Once both are full, the loop stops accepting.
	workers: int = WORKERS
	queue: int = QUEUE
	logRequests: bool = LOG_REQUESTS
	condition: Callable[[], bool] | None = None


OPTIONS: ServerOptions = ServerOptions()


class SocketBodyWriter(HTTPBodyWriter):
	"""Specialized body writer to work with blocking sockets."""

	__slots__ = ["client"]

	def __init__(
		self,
		client: socket.socket,
		size: int = BUFFER_SIZE,
		isCancelled: Callable[[], bool] | None = None,
	) -> None:
		super().__init__(size, isCancelled)
		self.client: socket.socket = client

	def _writeBytes(self, chunk: bytes) -> None:
		self.client.sendall(chunk)


class SocketServer:
	"""A blocking server: one thread accepts connections and hands them to
	a bounded pool of workers, each processing a single request before
	closing the connection."""

	def __init__(self, service: FileService, options: ServerOptions = OPTIONS):
		self.service: FileService = service
		self.options: ServerOptions = options
		self.state: ServerState = ServerState()
		self.socket: socket.socket | None = None
		self.thread: threading.Thread | None = None
		self.port: int = options.port

	# =========================================================================
	# LIFECYCLE
	# =========================================================================

	def bind(self) -> socket.socket:
		"""Binds the listening socket, trying the next ports when the
		configured one is taken."""
		options = self.options
		server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
		server.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
		port: int = options.port
		try:
			server.bind((options.host, port))
		except OSError as e:
			warning(f"Could not bind to {options.host}:{port}, trying other ports.")
			bound: bool = False
			for p in range(options.port + 1, options.port + 5):
				try:
					server.bind((options.host, p))
					bound = True
					info(f"Found alternate available port: {p}")
					break
				except OSError:
					pass
			if not bound:
				server.close()
				error(
					f"Unable to bind to {options.host}:{options.port}, aborting.",
					"HOSTPORTERR",
				)
				raise
		# The argument is the backlog of connections that will be accepted before
		# they are refused.
		server.listen(options.backlog)
		# Accept polls, so that the loop notices a shutdown
		server.settimeout(options.polling or 1.0)
		self.port = server.getsockname()[1]
		self.socket = server
		return server

	def start(self) -> "SocketServer":
		"""Binds and runs the accept loop on a dedicated thread."""
		if self.thread and self.thread.is_alive():
			return self
		server = self.socket or self.bind()
		self.thread = threading.Thread(
			target=self.serve, args=(server,), name="dirserve-accept"
		)
		self.thread.start()
		return self

	def stop(self) -> "SocketServer":
		"""Signals the shutdown and closes the listener. In-flight responses
		stop at their next chunk."""
		self.state.stop()
		if self.socket:
			try:
				self.socket.close()
			except OSError as e:
				warning("Could not close listener", Error=str(e))
		return self

	def join(self, timeout: float | None = None) -> bool:
		"""Waits for the accept loop and the workers to be done, returning
		`True` when they are."""
		if self.thread:
			self.thread.join(timeout)
			return not self.thread.is_alive()
		return True

	# =========================================================================
	# ACCEPT LOOP
	# =========================================================================

	def serve(self, server: socket.socket | None = None) -> None:
		"""The accept loop, blocking until the server is stopped."""
		server = server or self.socket or self.bind()
		options = self.options
		pool = ThreadPoolExecutor(
			max_workers=max(1, options.workers), thread_name_prefix="dirserve-worker"
		)
		slots = threading.BoundedSemaphore(max(1, options.workers) + max(0, options.queue))
		info(
			"Server listening",
			icon="🚀",
			Host=options.host,
			Port=self.port,
			Root=str(self.service.root),
			Workers=options.workers,
		)
		try:
			while self.state.isRunning:
				if options.condition and not options.condition():
					break
				# Backpressure: no new connection is accepted until a slot
				# frees up, the kernel backlog holds the others.
				if not slots.acquire(timeout=options.polling or 1.0):
					continue
				try:
					client, address = server.accept()
				except TimeoutError:
					slots.release()
					continue
				except OSError as e:
					slots.release()
					if not self.state.isRunning:
						break
					# This can be: [OSError] [Errno 24] Too many open files
					if e.errno == errno.EMFILE:
						warning("Too many open files, waiting before accepting")
						time.sleep(0.1)
					else:
						exception(e, "Accept failed")
					continue
				try:
					future: Future[None] = pool.submit(self.onRequest, client, address)
				except RuntimeError:
					# The pool is shutting down
					slots.release()
					client.close()
					break
				future.add_done_callback(lambda _: slots.release())
		finally:
			self.state.stop()
			server.close()
			pool.shutdown(wait=True)
			event("ServerStopped", Port=self.port)

	# =========================================================================
	# WORKERS
	# =========================================================================

	def onRequest(self, client: socket.socket, address: tuple[str, int]) -> None:
		"""Worker, processing a single request on the given connection."""
		try:
			if not self.state.isRunning:
				return
			req = self.readRequest(client, address)
			if req is None:
				return
			client.settimeout(self.options.timeout)
			if self.options.logRequests:
				event(req.method, req.path)
			writer = SocketBodyWriter(
				client,
				self.options.chunksize,
				lambda: not self.state.isRunning,
			)
			self.sendResponse(req, writer)
		except Exception as e:
			exception(e)
		finally:
			client.close()

	def readRequest(
		self, client: socket.socket, address: tuple[str, int] | None = None
	) -> HTTPRequest | None:
		"""Reads the request head from the client, returning `None` when
		the client sends nothing usable."""
		parser = HTTPParser()
		read: int = 0
		status: HTTPProcessingStatus = HTTPProcessingStatus.Processing
		# The timeout covers the whole head, not each read
		deadline: float = time.monotonic() + self.options.timeout
		try:
			while read < self.options.maxHeadSize:
				remaining: float = deadline - time.monotonic()
				if remaining <= 0:
					status = HTTPProcessingStatus.Timeout
					break
				client.settimeout(remaining)
				chunk = client.recv(self.options.readsize)
				if not chunk:
					status = HTTPProcessingStatus.NoData
					break
				read += len(chunk)
				for atom in parser.feed(chunk):
					if isinstance(atom, HTTPRequest):
						return atom
					elif atom is HTTPProcessingStatus.BadFormat:
						status = atom
						break
				if status is HTTPProcessingStatus.BadFormat:
					break
			else:
				status = HTTPProcessingStatus.TooLarge
		except TimeoutError:
			status = HTTPProcessingStatus.Timeout
		except ConnectionError as e:
			warning("Client connection failed", Client=str(address), Error=str(e))
			return None
		if status is HTTPProcessingStatus.NoData and not read:
			# A regular connection close
			pass
		else:
			warning(
				"Client did not send a complete request",
				Client=str(address),
				Status=status.name,
				Read=read,
			)
		return None

	def sendResponse(
		self, request: HTTPRequest, writer: HTTPBodyWriter
	) -> HTTPResponse | None:
		"""Processes the request and sends the response using the given
		writer. Any failure drops the connection, there are no retries."""
		res: HTTPResponse | None = None
		try:
			res = self.service.process(request)
			res.setHeader("Connection", "close")
			writer.write(res.head())
			writer.write(res.body)
		except (BrokenPipeError, ConnectionResetError):
			warning("Client closed the connection early", Path=request.path)
		except HTTPStreamCancelled as e:
			warning("Response cancelled", Path=request.path, Reason=str(e))
		except (HTTPStreamError, OSError) as e:
			error(
				f"Could not send response: {e}",
				"IOERR",
				Method=request.method,
				Path=request.path,
			)
		finally:
			if res:
				try:
					res.close()
				except Exception as e:
					exception(e)
		return res


def run(
	service: FileService,
	*,
	host: str = OPTIONS.host,
	port: int = OPTIONS.port,
	workers: int = OPTIONS.workers,
	queue: int = OPTIONS.queue,
	timeout: float = OPTIONS.timeout,
	polling: float = OPTIONS.polling,
	logRequests: bool = OPTIONS.logRequests,
	condition: Callable[[], bool] | None = None,
) -> SocketServer:
	"""High level function to run the server until it's stopped by
	SIGINT/SIGTERM or the `condition`."""
	options = ServerOptions(
		host=host,
		port=port,
		workers=workers,
		queue=queue,
		timeout=timeout,
		polling=polling,
		logRequests=logRequests,
		condition=condition,
	)
	server = SocketServer(service, options)
	# Signal handlers can only be registered from the main thread
	if threading.current_thread() is threading.main_thread():
		signal(SIGINT, lambda *_: server.stop())
		signal(SIGTERM, lambda *_: server.stop())
	server.start()
	try:
		# Joining with a timeout keeps the main thread responsive to signals
		while not server.join(options.polling or 1.0):
			pass
	except KeyboardInterrupt:
		event("ManualShutdown")
		server.stop()
		server.join()
	event("EOK")
	return server


# EOF
