from pathlib import Path
from typing import NamedTuple

from .config import ASSETS
from .utils.codec import gzipped
from .utils.htmpl import H, TNodeContent, html, raw
from .utils.io import DEFAULT_ENCODING
from .utils.logging import info, warning

ICON_NAME: str = "favicon.ico"
DIRECTORY_TEMPLATE_NAME: str = "Directory.html"
ERROR_TEMPLATE_NAME: str = "Error.html"

PAGE_CSS: str = """
:root {
    font-family: sans-serif;
    font-size: 14px;
    line-height: 1.35em;
    padding: 20px;
    background: #F0F0F0;
}
h1 {
    margin-top: 1.75em;
    margin-bottom: 1.75em;
    line-height: 1.25em;
}
table {
    border-collapse: collapse;
    min-width: 60%;
}
th, td {
    text-align: left;
    padding: 0.25em 1em 0.25em 0em;
}
td.size {
    text-align: right;
}
"""


def page(title: str, *body: TNodeContent) -> str:
	return "".join(
		html(
			H.html(
				H.head(
					H.meta(charset="utf-8"),
					H.meta(
						name="viewport",
						content="width=device-width, initial-scale=1.0",
					),
					H.title(title),
					H.style(raw(PAGE_CSS)),
				),
				H.body(*body),
			),
			doctype="html",
		)
	)


# Slots: %0% directory name, %1% title, %2% parent link, %3% root link,
# %4% table rows.
DIRECTORY_TEMPLATE: str = page(
	"%0%",
	H.h1("%1%"),
	H.p(H.a("/", href="%3%"), " ", H.a("..", href="%2%")),
	H.table(
		H.thead(H.tr(H.th("Name"), H.th("Last modified"), H.th("Size"))),
		H.tbody(raw("%4%")),
	),
)

# Slots: %0% requested path
ERROR_TEMPLATE: str = page(
	"Not Found",
	H.h1("Not Found"),
	H.p("Nothing is served at ", H.code("%0%"), "."),
)


class Assets(NamedTuple):
	"""The icon and templates, loaded once at startup and shared read-only
	by all the workers."""

	icon: bytes | None = None
	iconCompressed: bytes | None = None
	directoryTemplate: str = DIRECTORY_TEMPLATE
	errorTemplate: str = ERROR_TEMPLATE

	@staticmethod
	def Make(
		icon: bytes | None = None,
		directoryTemplate: str | None = None,
		errorTemplate: str | None = None,
	) -> "Assets":
		return Assets(
			icon=icon,
			iconCompressed=gzipped(icon) if icon else None,
			directoryTemplate=directoryTemplate or DIRECTORY_TEMPLATE,
			errorTemplate=errorTemplate or ERROR_TEMPLATE,
		)


def readAsset(path: Path) -> bytes | None:
	"""Reads the asset at the given path, returning `None` when it's missing
	or unreadable."""
	try:
		data = path.read_bytes()
	except FileNotFoundError:
		return None
	except OSError as e:
		warning(f"Could not read asset {path}", Error=str(e))
		return None
	info(f"Loaded {path.name}", Size=len(data))
	return data


def readTemplate(path: Path) -> str | None:
	data = readAsset(path)
	if data is None:
		info(f"Using default {path.name}")
		return None
	try:
		return data.decode(DEFAULT_ENCODING)
	except UnicodeDecodeError as e:
		warning(f"Template is not valid UTF-8, using default {path.name}", Error=str(e))
		return None


def loadAssets(path: Path | str | None = None) -> Assets:
	"""Loads the icon and templates from the given folder, falling back to
	the bundled templates. There's no bundled icon: without one, icon
	requests get the error page."""
	base = Path(ASSETS if path is None else path)
	icon = readAsset(base / ICON_NAME)
	if icon is None:
		warning(f"No {ICON_NAME} in {base}, icon requests will get the error page")
	return Assets.Make(
		icon=icon,
		directoryTemplate=readTemplate(base / DIRECTORY_TEMPLATE_NAME),
		errorTemplate=readTemplate(base / ERROR_TEMPLATE_NAME),
	)


# EOF
