from html import unescape
from pathlib import Path
from urllib.parse import quote, unquote

# -----------------------------------------------------------------------------
#
# PATH RESOLUTION
#
# -----------------------------------------------------------------------------
# Request paths are mapped to local paths under a root folder, and back to
# URLs when rendering listings. A local path outside of the root is never
# returned, whatever the request path is.


def decodePath(path: str) -> str:
	"""Percent-decodes then entity-decodes a request path."""
	return unescape(unquote(path, errors="strict"))


def isWithin(path: Path, root: Path) -> bool:
	"""Tells if `path` is `root` or one of its descendants."""
	return path.parts[: len(parts := root.parts)] == parts


def resolvePath(path: str, root: Path) -> Path | None:
	"""Returns the canonical local path for the given request path, or
	`None` when the path can't be decoded or resolves outside of `root`.
	Symbolic links are followed, so a link pointing outside of the root is
	rejected as well. `root` is expected to be canonical already."""
	try:
		relative = decodePath(path).strip().lstrip("/\\").replace("\\", "/")
	except UnicodeDecodeError:
		return None
	if "\x00" in relative:
		return None
	try:
		local = root.joinpath(relative).resolve()
	except (OSError, RuntimeError, ValueError):
		# Symlink loops, overlong names and the like
		return None
	return local if isWithin(local, root) else None


def toURL(path: Path, root: Path) -> str:
	"""Returns the percent-encoded URL path of `path` relative to `root`,
	without a leading slash. This is empty for the root and for anything
	that's not under it. Percent-encoding leaves no HTML-sensitive character,
	so the result can go in attributes as-is."""
	if path == root or not isWithin(path, root):
		return ""
	return quote(path.relative_to(root).as_posix())


def parentPath(path: Path, root: Path) -> Path:
	"""Returns the parent of `path`, stopping at `root`."""
	if path == root or not isWithin(path, root):
		return root
	else:
		return path.parent


# EOF
