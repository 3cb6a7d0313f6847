"""GitHub REST API access: branch revision lookup and tarball download."""

from __future__ import annotations

import asyncio
import logging
import socket
from dataclasses import dataclass
from typing import Any

import aiohttp

from .errors import (
    ConfigError,
    EmptyPayloadError,
    MalformedResponseError,
    NotFoundError,
    TransportError,
)
from .settings import (
    DEFAULT_API_URL,
    DEFAULT_BRANCH_REF,
    USER_AGENT_NAME,
    USER_AGENT_VERSION,
    Settings,
)

_LOG = logging.getLogger(__name__)


@dataclass(frozen=True)
class Target:
    """The repository being watched."""

    owner: str
    repo: str

    def __post_init__(self) -> None:
        for field_name in ("owner", "repo"):
            value = getattr(self, field_name)
            if not value or not value.strip():
                raise ValueError(f"{field_name} must not be empty")
            if "/" in value or any(ch.isspace() for ch in value):
                raise ValueError(f"{field_name} contains invalid characters: {value!r}")

    def __str__(self) -> str:
        return f"{self.owner}/{self.repo}"


def make_user_agent() -> str:
    """Return the User-Agent sent with every request, e.g. ``deployerd/1.0 (myhost)``."""
    try:
        hostname = socket.gethostname()
    except OSError as exc:
        raise ConfigError(f"Could not determine local hostname: {exc}") from exc
    if not hostname:
        raise ConfigError("Could not determine local hostname: empty result")
    return f"{USER_AGENT_NAME}/{USER_AGENT_VERSION} ({hostname})"


def create_session(settings: Settings, user_agent: str) -> aiohttp.ClientSession:
    """Create the HTTP session shared by every request for the process lifetime."""
    headers = {
        "User-Agent": user_agent,
        "Accept": "application/vnd.github+json",
    }
    if settings.github_token:
        headers["Authorization"] = f"Bearer {settings.github_token}"
    timeout = aiohttp.ClientTimeout(total=settings.http_timeout)
    return aiohttp.ClientSession(headers=headers, timeout=timeout)


def _parse_revision(payload: Any, ref: str) -> str:
    """Pick the commit sha for ``ref`` out of a git/refs listing.

    Args:
        payload: Decoded JSON body of the refs endpoint
        ref: Fully qualified reference name, e.g. ``refs/heads/main``

    Returns:
        The commit sha the reference points at

    Raises:
        MalformedResponseError: If the payload is not a list of ref objects
        NotFoundError: If no entry matches ``ref``
    """
    if not isinstance(payload, list):
        raise MalformedResponseError(
            f"Expected a JSON array of refs, got {type(payload).__name__}"
        )

    for entry in payload:
        if not isinstance(entry, dict) or entry.get("ref") != ref:
            continue
        obj = entry.get("object")
        sha = obj.get("sha") if isinstance(obj, dict) else None
        if not isinstance(sha, str) or not sha:
            raise MalformedResponseError(f"Ref {ref} has no commit sha")
        return sha

    raise NotFoundError(f"Reference {ref} not found", ref=ref)


class GitHubAPI:
    """Revision prober and snapshot fetcher backed by one aiohttp session."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        api_url: str = DEFAULT_API_URL,
        ref: str = DEFAULT_BRANCH_REF,
    ) -> None:
        self.session = session
        self.api_url = api_url.rstrip("/")
        self.ref = ref

    def _url(self, target: Target, path: str) -> str:
        return f"{self.api_url}/repos/{target.owner}/{target.repo}/{path}"

    async def fetch_revision(self, target: Target) -> str:
        """Return the commit sha the default branch of ``target`` points at."""
        url = self._url(target, "git/refs")
        _LOG.debug("Probing %s", url)
        try:
            async with self.session.get(url) as response:
                if response.status == 404:
                    raise NotFoundError(f"Repository {target} not found", ref=self.ref)
                response.raise_for_status()
                try:
                    payload = await response.json(content_type=None)
                except ValueError as exc:
                    raise MalformedResponseError(
                        f"Refs response for {target} is not valid JSON: {exc}"
                    ) from exc
        except asyncio.TimeoutError as exc:
            raise TransportError(f"Timed out probing {target}") from exc
        except aiohttp.ClientError as exc:
            raise TransportError(f"Failed to probe {target}: {exc}") from exc

        return _parse_revision(payload, self.ref)

    async def fetch_snapshot(self, target: Target) -> bytes:
        """Download the gzip tarball of the current tree of ``target``."""
        url = self._url(target, "tarball")
        _LOG.info("Downloading %s", target)
        try:
            async with self.session.get(url, allow_redirects=True) as response:
                response.raise_for_status()
                content = await response.read()
        except asyncio.TimeoutError as exc:
            raise TransportError(f"Timed out downloading {target}") from exc
        except aiohttp.ClientError as exc:
            raise TransportError(f"Failed to download {target}: {exc}") from exc

        if not content:
            raise EmptyPayloadError(f"Tarball for {target} was empty")
        _LOG.debug("Downloaded %d bytes for %s", len(content), target)
        return content
