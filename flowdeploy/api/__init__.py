"""HTTP API."""

from flowdeploy.api.server import ApiServer, create_web_app

__all__ = ["ApiServer", "create_web_app"]
