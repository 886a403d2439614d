"""Constants used throughout the application."""

from enum import Enum


class Section(str, Enum):
    """Top-level views of the application."""

    HOME = "home"
    COLLECTIONS = "collections"
    BANGUMI = "bangumi"


class Backend(str, Enum):
    """RemoteClient implementations selectable from the config."""

    MEMORY = "memory"
    HTTP = "http"


# HTTP Status Codes
HTTP_OK = 200
HTTP_CREATED = 201
HTTP_UNAUTHORIZED = 401
HTTP_FORBIDDEN = 403
HTTP_NOT_FOUND = 404

# Default values
DEFAULT_API_BASE_URL = "http://localhost:8080/api/v1"
DEFAULT_NOTIFICATION_SECONDS = 3.0
NOTIFICATION_HISTORY_LIMIT = 100
DEFAULT_MEMORY_LATENCY_SECONDS = 0.3
DEFAULT_WEB_UI_PORT = 8000
