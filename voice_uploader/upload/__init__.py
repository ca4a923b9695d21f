"""Upload of finished speaking turns: encode + HTTP in detached tasks."""
from .dispatcher import Dispatcher
from .uploader import Uploader, create_http_client

__all__ = ["Dispatcher", "Uploader", "create_http_client"]
