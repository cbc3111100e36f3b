import argparse
import sys
from pathlib import Path

from . import config
from .assets import loadAssets
from .server import run
from .services.files import FileService
from .utils.logging import Logger, info


def main(args: list[str] | None = None) -> None:
	parser = argparse.ArgumentParser(
		prog="dirserve",
		description="Serves files and directory listings over HTTP",
		formatter_class=argparse.ArgumentDefaultsHelpFormatter,  # Shows default values in help
	)
	parser.add_argument(
		"root",
		metavar="ROOT",
		nargs="?",
		default=config.ROOT,
		help="The folder to serve, relative to the current directory",
	)
	parser.add_argument(
		"-p",
		"--port",
		action="store",
		dest="port",
		type=int,
		help="Specifies the port",
		default=config.PORT,
	)
	parser.add_argument(
		"-H",
		"--host",
		action="store",
		dest="host",
		help="Specifies the interface to listen on",
		default=config.HOST,
	)
	parser.add_argument(
		"-s",
		"--folder-size",
		action="store_true",
		dest="folderSize",
		help="Shows recursive folder sizes in listings",
		default=config.SHOW_FOLDER_SIZE,
	)
	parser.add_argument(
		"-w",
		"--workers",
		action="store",
		dest="workers",
		type=int,
		help="Number of requests processed concurrently",
		default=config.WORKERS,
	)
	parser.add_argument(
		"-q",
		"--queue",
		action="store",
		dest="queue",
		type=int,
		help="Number of accepted connections waiting for a worker",
		default=config.QUEUE,
	)
	parser.add_argument(
		"-a",
		"--assets",
		action="store",
		dest="assets",
		help="Folder containing favicon.ico, Directory.html and Error.html",
		default=config.ASSETS,
	)
	parser.add_argument(
		"-e",
		"--error-status",
		action="store",
		dest="errorStatus",
		type=int,
		help="Status of the error page, use 404 for the conventional behaviour",
		default=config.ERROR_STATUS,
	)
	parser.add_argument(
		"--absolute",
		action="store_true",
		dest="absolute",
		help="Requires ROOT to be an absolute path",
	)
	parser.add_argument(
		"-l",
		"--log-level",
		action="store",
		dest="logLevel",
		choices=["debug", "info", "warning", "error", "exception"],
		default=config.LOG_LEVEL,
	)

	options = parser.parse_args(args=args)
	Logger.SetLevel(options.logLevel)
	if options.absolute and not Path(options.root).is_absolute():
		parser.error(f"ROOT must be absolute with --absolute: {options.root}")
	root = config.rootPath(options.root, relative=not options.absolute)
	if not root.is_dir():
		parser.error(f"ROOT is not a directory: {root}")

	info("Starting dirserve", Root=str(root), FolderSize=options.folderSize)
	service = FileService(
		root,
		assets=loadAssets(options.assets),
		showFolderSize=options.folderSize,
		errorStatus=options.errorStatus,
	)
	run(
		service,
		host=options.host,
		port=options.port,
		workers=options.workers,
		queue=options.queue,
	)


if __name__ == "__main__":
	main(sys.argv[1:])

# EOF
