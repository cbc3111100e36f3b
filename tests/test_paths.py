import os
from pathlib import Path

import pytest

from dirserve.paths import decodePath, parentPath, resolvePath, toURL


def test_decode() -> None:
	assert decodePath("/a%20b") == "/a b"
	assert decodePath("/caf%C3%A9") == "/café"
	assert decodePath("/a&amp;b") == "/a&b"


def test_resolve_within_root(root: Path) -> None:
	assert resolvePath("/", root) == root
	assert resolvePath("", root) == root
	assert resolvePath("/a.txt", root) == root / "a.txt"
	assert resolvePath("//z//inner.txt", root) == root / "z" / "inner.txt"
	assert resolvePath("  /z/  ", root) == root / "z"
	assert resolvePath("/z/../a.txt", root) == root / "a.txt"
	assert resolvePath("/z\\inner.txt", root) == root / "z" / "inner.txt"
	assert resolvePath("/missing/file", root) == root / "missing" / "file"


@pytest.mark.parametrize(
	"path",
	[
		"/../../etc/passwd",
		"/..",
		"/z/../../etc",
		"/%2e%2e/%2e%2e/etc/passwd",
		"/%2E%2E%2F%2E%2E%2Fetc",
		"\\..\\..\\etc",
		"/..%5c..%5cetc",
		"/&#46;&#46;/secret",
		"/a%00b",
		"/%ff",
	],
)
def test_resolve_rejects(root: Path, path: str) -> None:
	assert resolvePath(path, root) is None


def test_resolve_rejects_symlink_escape(tmp_path: Path, root: Path) -> None:
	outside = tmp_path / "outside"
	outside.mkdir()
	(outside / "secret.txt").write_text("secret")
	try:
		os.symlink(outside, root / "link")
	except (OSError, NotImplementedError):
		pytest.skip("Symbolic links are not supported")
	assert resolvePath("/link/secret.txt", root) is None
	assert resolvePath("/link", root) is None


def test_to_url(root: Path) -> None:
	assert toURL(root, root) == ""
	assert toURL(root / "z", root) == "z"
	assert toURL(root / "z" / "inner.txt", root) == "z/inner.txt"
	assert toURL(root / "a b&c.txt", root) == "a%20b%26c.txt"
	assert toURL(root / '<">.txt', root) == "%3C%22%3E.txt"
	assert toURL(root.parent, root) == ""
	assert toURL(Path("/elsewhere"), root) == ""


def test_parent(root: Path) -> None:
	assert parentPath(root, root) == root
	assert parentPath(root / "z", root) == root
	assert parentPath(root / "z" / "deeper", root) == root / "z"
	assert parentPath(root.parent, root) == root


# EOF
