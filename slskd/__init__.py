from .client import SlskdClient
from .errors import BackendUnavailableError, MalformedResponseError, SlskdError
from .models import PeerResponse, SearchStatus

__all__ = [
    "BackendUnavailableError",
    "MalformedResponseError",
    "PeerResponse",
    "SearchStatus",
    "SlskdClient",
    "SlskdError",
]
