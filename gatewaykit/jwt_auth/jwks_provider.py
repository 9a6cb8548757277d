"""Loading and caching of JSON Web Key Sets."""

from __future__ import annotations

import json
import logging
import threading
import time
import urllib.error
import urllib.request
from dataclasses import dataclass
from typing import Any, Callable, Optional

from gatewaykit.jwt_auth.config import (
    DEFAULT_CACHE_DURATION,
    JwksSource,
    LocalJwksSource,
    RemoteJwksSource,
)

logger = logging.getLogger(__name__)

_REQUIRED_KEY_FIELDS = {
    "EC": ("crv", "x", "y"),
    "RSA": ("n", "e"),
    "oct": ("k",),
    "OKP": ("crv", "x"),
}


class JwksProviderError(Exception):
    """Raised when a JWKS cannot be loaded or used."""


def parse_jwk_set(text: str) -> dict[str, Any]:
    """Parse a JWKS document; raises ValueError when its structure is invalid."""
    data = json.loads(text)
    if not isinstance(data, dict) or not isinstance(data.get("keys"), list):
        raise ValueError("a JWKS must be an object with a 'keys' list")
    for key in data["keys"]:
        if not isinstance(key, dict):
            raise ValueError("every JWK must be an object")
        key_type = key.get("kty")
        required = _REQUIRED_KEY_FIELDS.get(key_type)
        if required is None:
            raise ValueError(f"unknown key type: {key_type!r}")
        for name in required:
            if not isinstance(key.get(name), str):
                raise ValueError(f"{key_type} key is missing string field '{name}'")
    return data


def _default_fetch(url: str) -> str:
    try:
        with urllib.request.urlopen(url, timeout=30) as response:
            return response.read().decode("utf-8")
    except urllib.error.HTTPError as exc:
        # The body of an error status is still handed on, as with any other response.
        return exc.read().decode("utf-8", errors="replace")


@dataclass(frozen=True)
class TimedJwkSet:
    """A key set with the time (seconds since the epoch) after which it is stale."""

    expiration: Optional[float]
    jwk_set: dict[str, Any]

    def is_expired(self, now: float) -> bool:
        return self.expiration is not None and now > self.expiration


class JwksProvider:
    """Loads a key set from its configured source and keeps it until it expires."""

    def __init__(
        self,
        config: JwksSource,
        fetch: Optional[Callable[[str], str]] = None,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self.config = config
        self._fetch = fetch or _default_fetch
        self._clock = clock or time.time
        self._lock = threading.Lock()
        self._jwk: Optional[TimedJwkSet] = None

    def load_jwks(self) -> "JwksProvider":
        """Load the key set from its source now; raises JwksProviderError on failure."""
        if isinstance(self.config, RemoteJwksSource):
            url = self.config.url
            logger.debug("loading jwks for a remote source: %s", url)
            try:
                text = self._fetch(url)
            except (OSError, ValueError) as exc:
                raise JwksProviderError(f"failed to load remote jwks: {exc}") from exc
            cache_duration = self.config.cache_duration
            if cache_duration is None:
                cache_duration = DEFAULT_CACHE_DURATION
            expiration: Optional[float] = self._clock() + cache_duration
        elif isinstance(self.config, LocalJwksSource):
            text = self.config.file.contents
            expiration = None
        else:
            raise JwksProviderError(f"unsupported jwks source: {self.config!r}")

        try:
            jwk_set = parse_jwk_set(text)
        except ValueError as exc:
            raise JwksProviderError(f"failed to parse jwks json file: {exc}") from exc

        with self._lock:
            self._jwk = TimedJwkSet(expiration=expiration, jwk_set=jwk_set)
        return self

    def can_prefetch(self) -> bool:
        """Whether the key set should be fetched on startup."""
        return isinstance(self.config, RemoteJwksSource) and self.config.prefetch is True

    def needs_refetch(self) -> bool:
        """Whether no key set is loaded yet, or the loaded one has expired."""
        with self._lock:
            current = self._jwk
        return current is None or current.is_expired(self._clock())

    def retrieve_jwk_set(self) -> TimedJwkSet:
        """The current key set, loading it first when needed."""
        if self.needs_refetch():
            self.load_jwks()
        with self._lock:
            current = self._jwk
        if current is None:
            raise JwksProviderError("failed to acquire access to jwk handle")
        return current