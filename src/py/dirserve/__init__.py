from .assets import Assets, loadAssets  # NOQA: F401
from .http.model import HTTPRequest, HTTPResponse  # NOQA: F401
from .server import SocketServer, ServerOptions, run  # NOQA: F401
from .services.files import FileService, RequestType  # NOQA: F401

__version__ = "1.0.0"

# EOF
