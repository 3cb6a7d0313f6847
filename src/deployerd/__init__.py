"""deployerd: keep a local copy of a GitHub repository's main branch up to date."""

from .archive import materialize
from .errors import (
    ConfigError,
    DecodeError,
    DeployerError,
    DestinationIOError,
    EmptyPayloadError,
    MalformedResponseError,
    NotFoundError,
    TransportError,
)
from .github import GitHubAPI, Target, make_user_agent
from .poller import Phase, Poller, TickOutcome

__all__ = [
    "materialize",
    "ConfigError",
    "DecodeError",
    "DeployerError",
    "DestinationIOError",
    "EmptyPayloadError",
    "MalformedResponseError",
    "NotFoundError",
    "TransportError",
    "GitHubAPI",
    "Target",
    "make_user_agent",
    "Phase",
    "Poller",
    "TickOutcome",
]
