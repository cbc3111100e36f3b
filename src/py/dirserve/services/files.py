import os
import time
from email.utils import formatdate
from enum import Enum
from pathlib import Path
from urllib.parse import quote

from ..assets import ICON_NAME, Assets, loadAssets
from ..config import ERROR_STATUS, FOLDER_SIZE_LIMIT, SHOW_FOLDER_SIZE
from ..http.model import HTTPBodyFile, HTTPRequest, HTTPResponse
from ..http.ranges import parseRange
from ..paths import decodePath, parentPath, resolvePath, toURL
from ..utils.codec import acceptsGzip, gzipped
from ..utils.files import ListingEntry, contentType, listing
from ..utils.io import DEFAULT_ENCODING
from ..utils.htmpl import H, Node, escape, fill
from ..utils.logging import LogLevel, debug, logged

# Icons are cached by clients for a day
ICON_MAX_AGE: int = 86_400

# Characters that would end or split a `filename` parameter
DISPOSITION_UNSAFE: str = '";\\,'


class RequestType(Enum):
	Icon = "icon"
	File = "file"
	Directory = "directory"
	Other = "other"


def httpdate(timestamp: float | None = None) -> str:
	"""Formats a timestamp as an RFC 1123 date, in GMT."""
	return formatdate(time.time() if timestamp is None else timestamp, usegmt=True)


def disposition(name: str) -> str:
	"""Returns an inline `Content-Disposition`. Names that are not plain
	ASCII, or that hold control characters, quotes or separators, get a
	sanitized `filename` and the exact name as an RFC 5987 `filename*`, so
	that the header stays on a single ASCII line."""
	fallback: str = "".join(
		"_" if not _.isprintable() or not _.isascii() or _ in DISPOSITION_UNSAFE else _
		for _ in name
	)
	if fallback == name:
		return f"inline; filename={name}"
	else:
		return f"inline; filename={fallback}; filename*=UTF-8''{quote(name, safe='')}"


class FileService:
	"""Serves files, directory listings, an icon and an error page from a
	local root folder. Every request is processed as a read."""

	def __init__(
		self,
		root: str | Path | None = None,
		*,
		assets: Assets | None = None,
		showFolderSize: bool = SHOW_FOLDER_SIZE,
		folderSizeLimit: int | None = FOLDER_SIZE_LIMIT,
		errorStatus: int = ERROR_STATUS,
	):
		self.root: Path = (
			root if isinstance(root, Path) else Path(root or ".")
		).resolve()
		self.assets: Assets = loadAssets() if assets is None else assets
		self.showFolderSize: bool = showFolderSize
		self.folderSizeLimit: int | None = folderSizeLimit
		self.errorStatus: int = errorStatus

	def resolvePath(self, path: str) -> Path | None:
		return resolvePath(path, self.root)

	def classify(self, localPath: Path | None) -> RequestType:
		"""Tells which responder applies to the given resolved path."""
		if localPath is None:
			return RequestType.Other
		elif localPath.name == ICON_NAME:
			return RequestType.Icon
		elif localPath.is_file():
			return RequestType.File
		elif localPath.is_dir():
			return RequestType.Directory
		else:
			return RequestType.Other

	def process(self, request: HTTPRequest) -> HTTPResponse:
		local_path = self.resolvePath(request.path)
		gzip = acceptsGzip(request.header("Accept-Encoding"))
		request_type = self.classify(local_path)
		if logged(LogLevel.Debug):
			debug(
				"Request classified",
				Path=request.path,
				Type=request_type.value,
				Local=str(local_path) if local_path else None,
			)
		match request_type:
			case RequestType.Icon:
				return self.serveIcon(request.path, gzip)
			case RequestType.File if local_path:
				return self.serveFile(local_path, request.header("Range"))
			case RequestType.Directory if local_path:
				return self.serveDirectory(
					local_path, request.path, request.host, gzip
				)
			case _:
				return self.serveOther(request.path, gzip)

	# =========================================================================
	# RESPONDERS
	# =========================================================================

	def serveIcon(self, path: str, gzip: bool = False) -> HTTPResponse:
		icon = self.assets.icon
		if icon is None:
			return self.serveOther(path, gzip)
		now = time.time()
		headers: dict[str, str] = {
			"Content-Disposition": f'inline; filename="{ICON_NAME}"',
			"Date": httpdate(now),
			"Cache-Control": f"public, max-age={ICON_MAX_AGE}",
			"Expires": httpdate(now + ICON_MAX_AGE),
		}
		if gzip and self.assets.iconCompressed:
			headers["Content-Encoding"] = "gzip"
			icon = self.assets.iconCompressed
		return HTTPResponse.Create(icon, contentType="image/x-icon", headers=headers)

	def serveFile(
		self, localPath: Path, rangeHeader: str | None = None
	) -> HTTPResponse:
		"""Serves the file, or the requested byte range of it. The file is
		opened here and closed once the response is sent, the body being
		streamed in chunks."""
		f = open(localPath, "rb")
		try:
			stats = os.fstat(f.fileno())
			length: int = stats.st_size
			byte_range = parseRange(rangeHeader)
			bounds = (0, length - 1) if byte_range is None else byte_range.bounds(length)
			if bounds is None:
				f.close()
				return HTTPResponse.Create(
					status=416,
					headers={
						"Date": httpdate(),
						"Accept-Ranges": "bytes",
						"Content-Range": f"bytes */{length}",
					},
				)
			start, end = bounds
			headers: dict[str, str] = {
				"Content-Disposition": disposition(localPath.name),
				"Date": httpdate(),
				"Last-Modified": httpdate(stats.st_mtime),
				"Accept-Ranges": "bytes",
			}
			if length:
				headers["Content-Range"] = f"bytes {start}-{end}/{length}"
			status = 200 if start == 0 and end == length - 1 else 206
			return HTTPResponse.Create(
				HTTPBodyFile(localPath, start, end - start + 1, f),
				contentType=contentType(localPath),
				headers=headers,
				status=status,
			).onClose(lambda _: f.close())
		except Exception:
			f.close()
			raise

	def serveDirectory(
		self, localPath: Path, path: str, host: str = "", gzip: bool = False
	) -> HTTPResponse:
		dirs, files = listing(
			localPath,
			folderSizes=self.showFolderSize,
			folderSizeLimit=self.folderSizeLimit,
		)
		rows: str = "\n".join(
			str(self.renderEntry(_, host)) for _ in dirs + files
		)
		name: str = localPath.name if localPath != self.root else "/"
		payload = fill(
			self.assets.directoryTemplate,
			escape(name),
			escape(f"Directory of {self.displayPath(path)}"),
			escape(self.link(parentPath(localPath, self.root), host, True)),
			escape(self.link(self.root, host, True)),
			rows,
		).encode(DEFAULT_ENCODING)
		headers: dict[str, str] = {
			"Content-Language": "en",
			"Content-Disposition": disposition(f"{localPath.name or 'index'}.html"),
			"Date": httpdate(),
			"Last-Modified": httpdate(localPath.stat().st_mtime),
		}
		if gzip:
			headers["Content-Encoding"] = "gzip"
			payload = gzipped(payload)
		return HTTPResponse.Create(
			payload, contentType="text/html; charset=UTF-8", headers=headers
		)

	def serveOther(self, path: str, gzip: bool = False) -> HTTPResponse:
		"""Serves the error page, with a 200 status unless configured
		otherwise (see `config.ERROR_STATUS`)."""
		payload = fill(
			self.assets.errorTemplate, escape(self.displayPath(path))
		).encode(DEFAULT_ENCODING)
		headers: dict[str, str] = {
			"Content-Language": "en",
			"Content-Disposition": "inline; filename=Error.html",
			"Date": httpdate(),
		}
		if gzip:
			headers["Content-Encoding"] = "gzip"
			payload = gzipped(payload)
		return HTTPResponse.Create(
			payload,
			contentType="text/html; charset=UTF-8",
			headers=headers,
			status=self.errorStatus,
		)

	# =========================================================================
	# RENDERING
	# =========================================================================

	def link(self, localPath: Path, host: str, isDirectory: bool) -> str:
		url = toURL(localPath, self.root)
		prefix = f"//{host}/" if host else "/"
		return f"{prefix}{url}/" if isDirectory and url else f"{prefix}{url}"

	def renderEntry(self, entry: ListingEntry, host: str) -> Node:
		return H.tr(
			H.td(
				H.a(
					f"/{entry.name}/" if entry.isDirectory else f"/{entry.name}",
					href=self.link(entry.path, host, entry.isDirectory),
				),
				_="name",
			),
			H.td(
				time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(entry.updatedAt)),
				_="date",
			),
			H.td(f"{entry.size // 1024} KB", _="size"),
		)

	@staticmethod
	def displayPath(path: str) -> str:
		try:
			return decodePath(path)
		except UnicodeDecodeError:
			return path


# EOF
