from os import getenv
from pathlib import Path

from .utils.io import DEFAULT_ENCODING  # NOQA: F401

PORT: int = int(getenv("PORT", 80))

# The listener binds all the interfaces by default
HOST: str = getenv("HOST", "0.0.0.0")  # nosec: B104

# The served folder, relative to the current directory unless absolute
ROOT: str = getenv("DIRSERVE_ROOT", "Files")

# Where `favicon.ico`, `Directory.html` and `Error.html` are looked up
ASSETS: str = getenv("DIRSERVE_ASSETS", ".")

# Recursive folder sizes in listings walk the whole subtree, so they're
# opt-in and capped to a number of files.
SHOW_FOLDER_SIZE: bool = getenv("DIRSERVE_FOLDER_SIZE", "0") == "1"
FOLDER_SIZE_LIMIT: int = int(getenv("DIRSERVE_FOLDER_SIZE_LIMIT", 100_000))

WORKERS: int = int(getenv("DIRSERVE_WORKERS", 32))
QUEUE: int = int(getenv("DIRSERVE_QUEUE", 128))

# NOTE: The error page is sent with a 200 status by default, as existing
# clients rely on it. Set to 404 for the conventional behaviour.
ERROR_STATUS: int = int(getenv("DIRSERVE_ERROR_STATUS", 200))

LOG_REQUESTS: bool = getenv("DIRSERVE_LOG_REQUESTS", "1") == "1"
LOG_LEVEL: str = getenv("DIRSERVE_LOG_LEVEL", "info")


def rootPath(root: str | Path, *, relative: bool = True, base: Path | None = None) -> Path:
	"""Returns the absolute, canonical path of the served folder."""
	path = Path(root)
	if relative and not path.is_absolute():
		path = (base or Path.cwd()) / path
	return path.resolve()


# EOF
