import gzip
from pathlib import Path

from dirserve.assets import (
	DIRECTORY_TEMPLATE,
	ERROR_TEMPLATE,
	Assets,
	loadAssets,
	readTemplate,
)


def test_defaults(tmp_path: Path) -> None:
	assets = loadAssets(tmp_path)
	assert assets.icon is None
	assert assets.iconCompressed is None
	assert assets.directoryTemplate == DIRECTORY_TEMPLATE
	assert assets.errorTemplate == ERROR_TEMPLATE


def test_default_templates_have_slots() -> None:
	for slot in ("%0%", "%1%", "%2%", "%3%", "%4%"):
		assert slot in DIRECTORY_TEMPLATE
	assert "%0%" in ERROR_TEMPLATE
	assert DIRECTORY_TEMPLATE.startswith("<!DOCTYPE html>")


def test_overrides(tmp_path: Path) -> None:
	(tmp_path / "favicon.ico").write_bytes(b"ICON" * 10)
	(tmp_path / "Directory.html").write_text("<h1>%1%</h1>%4%", encoding="utf8")
	(tmp_path / "Error.html").write_text("<p>Où est %0% ?</p>", encoding="utf8")
	assets = loadAssets(str(tmp_path))
	assert assets.icon == b"ICON" * 10
	assert assets.iconCompressed is not None
	assert gzip.decompress(assets.iconCompressed) == assets.icon
	assert assets.directoryTemplate == "<h1>%1%</h1>%4%"
	assert assets.errorTemplate == "<p>Où est %0% ?</p>"


def test_invalid_template_falls_back(tmp_path: Path) -> None:
	path = tmp_path / "Error.html"
	path.write_bytes(b"\xff\xfe%0%")
	assert readTemplate(path) is None
	assert loadAssets(tmp_path).errorTemplate == ERROR_TEMPLATE


def test_make() -> None:
	assets = Assets.Make(icon=b"x" * 100, directoryTemplate="%4%")
	assert assets.iconCompressed is not None
	assert gzip.decompress(assets.iconCompressed) == b"x" * 100
	assert assets.directoryTemplate == "%4%"
	assert assets.errorTemplate == ERROR_TEMPLATE
	assert Assets.Make().icon is None


# EOF
