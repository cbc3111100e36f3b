import mimetypes
import os
from pathlib import Path
from typing import NamedTuple

mimetypes.init()

# Overrides for extensions the platform tables get wrong or don't know
MIME_TYPES: dict[str, str] = dict(
	bz2="application/x-bzip",
	gz="application/x-gzip",
	ico="image/x-icon",
	md="text/markdown",
	mkv="video/x-matroska",
	webmanifest="application/manifest+json",
)

DEFAULT_CONTENT_TYPE: str = "application/octet-stream"


def contentType(path: Path | str) -> str:
	"""Guesses the content type from the given path's extension"""
	name = os.path.basename(str(path))
	ext = name.rsplit(".", 1)[-1].lower() if "." in name else ""
	return (
		res
		if (res := MIME_TYPES.get(ext))
		else mimetypes.guess_type(name)[0] or DEFAULT_CONTENT_TYPE
	)


class ListingEntry(NamedTuple):
	"""An immediate child of a listed directory."""

	name: str
	path: Path
	isDirectory: bool
	updatedAt: float
	size: int

	@property
	def sortKey(self) -> tuple[str, str]:
		# Case-insensitive, with the exact name breaking ties so that the
		# order never depends on the filesystem enumeration.
		return (self.name.casefold(), self.name)


def dirSize(path: Path, limit: int | None = None) -> int:
	"""Sums the size of the regular files under `path`, recursively. The walk
	stops after `limit` files, so the result is a lower bound on large trees."""
	total: int = 0
	count: int = 0
	for item in path.rglob("*"):
		try:
			if item.is_file():
				total += item.stat().st_size
				count += 1
		except OSError:
			# Skip files/folders we can't access
			continue
		if limit is not None and count >= limit:
			break
	return total


def listing(
	path: Path, *, folderSizes: bool = False, folderSizeLimit: int | None = None
) -> tuple[list[ListingEntry], list[ListingEntry]]:
	"""Returns the sorted `(directories, files)` entries directly under `path`.
	Entries that are neither (broken links, sockets) are left out."""
	dirs: list[ListingEntry] = []
	files: list[ListingEntry] = []
	for p in path.iterdir():
		try:
			if p.is_dir():
				dirs.append(
					ListingEntry(
						name=p.name,
						path=p,
						isDirectory=True,
						updatedAt=p.stat().st_mtime,
						size=dirSize(p, folderSizeLimit) if folderSizes else 0,
					)
				)
			elif p.is_file():
				stats = p.stat()
				files.append(
					ListingEntry(
						name=p.name,
						path=p,
						isDirectory=False,
						updatedAt=stats.st_mtime,
						size=stats.st_size,
					)
				)
		except OSError:
			# The entry went away or can't be read while listing
			continue
	return (
		sorted(dirs, key=lambda _: _.sortKey),
		sorted(files, key=lambda _: _.sortKey),
	)


# EOF
