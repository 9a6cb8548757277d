"""Configuration of the JWT authentication plugin."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Mapping, Optional, Union

from gatewaykit.core import LocalFileReference, format_duration, parse_duration

DEFAULT_CACHE_DURATION = 10 * 60.0


class Algorithm(str, Enum):
    """Signature algorithms a JWT may be verified with."""

    HS256 = "HS256"
    HS384 = "HS384"
    HS512 = "HS512"
    ES256 = "ES256"
    ES384 = "ES384"
    RS256 = "RS256"
    RS384 = "RS384"
    RS512 = "RS512"
    PS256 = "PS256"
    PS384 = "PS384"
    PS512 = "PS512"
    EdDSA = "EdDSA"

    @classmethod
    def parse(cls, value: Any) -> "Algorithm":
        try:
            return cls(value)
        except ValueError as exc:
            raise ValueError(f"unknown JWT algorithm: {value!r}") from exc


def _expect_mapping(data: Any, what: str) -> Mapping[str, Any]:
    if not isinstance(data, Mapping):
        raise ValueError(f"{what} must be an object")
    return data


def _required_str(data: Mapping[str, Any], key: str, what: str) -> str:
    if key not in data:
        raise ValueError(f"{what}: missing field '{key}'")
    value = data[key]
    if not isinstance(value, str):
        raise ValueError(f"{what}: field '{key}' must be a string")
    return value


def _optional_str(data: Mapping[str, Any], key: str, what: str) -> Optional[str]:
    value = data.get(key)
    if value is not None and not isinstance(value, str):
        raise ValueError(f"{what}: field '{key}' must be a string")
    return value


def _optional_bool(data: Mapping[str, Any], key: str, what: str) -> Optional[bool]:
    value = data.get(key)
    if value is not None and not isinstance(value, bool):
        raise ValueError(f"{what}: field '{key}' must be a boolean")
    return value


def _optional_str_list(data: Mapping[str, Any], key: str, what: str) -> Optional[list[str]]:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ValueError(f"{what}: field '{key}' must be a list of strings")
    return list(value)


@dataclass(frozen=True)
class HeaderLookup:
    """Look the token up in a header, after an optional prefix such as `Bearer`."""

    SOURCE = "header"

    name: str
    prefix: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {"source": self.SOURCE, "name": self.name, "prefix": self.prefix}


@dataclass(frozen=True)
class QueryParamLookup:
    """Look the token up in a query string parameter."""

    SOURCE = "query_param"

    name: str

    def to_dict(self) -> dict[str, Any]:
        return {"source": self.SOURCE, "name": self.name}


@dataclass(frozen=True)
class CookieLookup:
    """Look the token up in a cookie."""

    SOURCE = "cookies"

    name: str

    def to_dict(self) -> dict[str, Any]:
        return {"source": self.SOURCE, "name": self.name}


LookupLocation = Union[HeaderLookup, QueryParamLookup, CookieLookup]


def parse_lookup_location(data: Any) -> LookupLocation:
    """Build a lookup location from its `source`-tagged object."""
    what = "lookup location"
    data = _expect_mapping(data, what)
    source = data.get("source")
    if source == HeaderLookup.SOURCE:
        return HeaderLookup(
            name=_required_str(data, "name", what),
            prefix=_optional_str(data, "prefix", what),
        )
    if source == QueryParamLookup.SOURCE:
        return QueryParamLookup(name=_required_str(data, "name", what))
    if source == CookieLookup.SOURCE:
        return CookieLookup(name=_required_str(data, "name", what))
    raise ValueError(f"unknown lookup location source: {source!r}")


def _load_file_reference(value: Any) -> LocalFileReference:
    if isinstance(value, LocalFileReference):
        return value
    if isinstance(value, Mapping):
        path = _required_str(value, "path", "file reference")
        contents = value.get("contents", "")
        if not isinstance(contents, str):
            raise ValueError("file reference: field 'contents' must be a string")
        return LocalFileReference(path=path, contents=contents)
    if isinstance(value, str):
        try:
            contents = Path(value).read_text(encoding="utf-8")
        except OSError as exc:
            raise ValueError(f"failed to read file {value!r}: {exc}") from exc
        return LocalFileReference(path=value, contents=contents)
    raise ValueError("local jwks source: field 'path' must be a string")


@dataclass(frozen=True)
class LocalJwksSource:
    """A JWKS file on the local file-system, read once and cached."""

    SOURCE = "local"

    file: LocalFileReference

    def to_dict(self) -> dict[str, Any]:
        return {"source": self.SOURCE, "path": self.file.path}


@dataclass(frozen=True)
class RemoteJwksSource:
    """A JWKS fetched over HTTP and cached for `cache_duration` seconds."""

    SOURCE = "remote"

    url: str
    cache_duration: Optional[float] = DEFAULT_CACHE_DURATION
    prefetch: Optional[bool] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.SOURCE,
            "url": self.url,
            "cache_duration": (
                None if self.cache_duration is None else format_duration(self.cache_duration)
            ),
            "prefetch": self.prefetch,
        }


JwksSource = Union[LocalJwksSource, RemoteJwksSource]


def parse_jwks_source(data: Any) -> JwksSource:
    """Build a JWKS provider source from its `source`-tagged object."""
    what = "jwks provider"
    data = _expect_mapping(data, what)
    source = data.get("source")
    if source == LocalJwksSource.SOURCE:
        if "path" not in data:
            raise ValueError(f"{what}: missing field 'path'")
        return LocalJwksSource(file=_load_file_reference(data["path"]))
    if source == RemoteJwksSource.SOURCE:
        cache_duration: Optional[float] = DEFAULT_CACHE_DURATION
        if "cache_duration" in data:
            raw = data["cache_duration"]
            if raw is None:
                cache_duration = None
            elif isinstance(raw, str):
                cache_duration = parse_duration(raw)
            else:
                raise ValueError(f"{what}: field 'cache_duration' must be a duration string")
        return RemoteJwksSource(
            url=_required_str(data, "url", what),
            cache_duration=cache_duration,
            prefetch=_optional_bool(data, "prefetch", what),
        )
    raise ValueError(f"unknown jwks provider source: {source!r}")


def default_lookup_locations() -> list[LookupLocation]:
    """The token is looked up in the `Authorization` header after `Bearer`."""
    return [HeaderLookup(name="Authorization", prefix="Bearer")]


def default_allowed_algorithms() -> list[Algorithm]:
    """Every supported algorithm."""
    return [
        Algorithm.HS256,
        Algorithm.HS384,
        Algorithm.HS512,
        Algorithm.RS256,
        Algorithm.RS384,
        Algorithm.RS512,
        Algorithm.ES256,
        Algorithm.ES384,
        Algorithm.PS256,
        Algorithm.PS384,
        Algorithm.PS512,
        Algorithm.EdDSA,
    ]


@dataclass(frozen=True)
class JwtAuthPluginConfig:
    """JWKS providers, token lookup and validation rules of the JWT plugin."""

    jwks_providers: list[JwksSource] = field(default_factory=list)
    issuers: Optional[list[str]] = None
    audiences: Optional[list[str]] = None
    lookup_locations: list[LookupLocation] = field(default_factory=default_lookup_locations)
    reject_unauthenticated_requests: Optional[bool] = None
    allowed_algorithms: Optional[list[Algorithm]] = field(
        default_factory=default_allowed_algorithms
    )
    forward_token_to_upstream_header: Optional[str] = None
    forward_claims_to_upstream_header: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Any) -> "JwtAuthPluginConfig":
        """Build the configuration from decoded data; raises ValueError when it is invalid."""
        what = "jwt_auth plugin configuration"
        data = _expect_mapping(data, what)
        if "jwks_providers" not in data:
            raise ValueError(f"{what}: missing field 'jwks_providers'")
        providers = data["jwks_providers"]
        if not isinstance(providers, list):
            raise ValueError(f"{what}: field 'jwks_providers' must be a list")

        if "lookup_locations" in data:
            raw_locations = data["lookup_locations"]
            if not isinstance(raw_locations, list):
                raise ValueError(f"{what}: field 'lookup_locations' must be a list")
            lookup_locations = [parse_lookup_location(item) for item in raw_locations]
        else:
            lookup_locations = default_lookup_locations()

        if "allowed_algorithms" in data:
            raw_algorithms = data["allowed_algorithms"]
            if raw_algorithms is None:
                allowed_algorithms = None
            elif isinstance(raw_algorithms, list):
                allowed_algorithms = [Algorithm.parse(item) for item in raw_algorithms]
            else:
                raise ValueError(f"{what}: field 'allowed_algorithms' must be a list")
        else:
            allowed_algorithms = default_allowed_algorithms()

        return cls(
            jwks_providers=[parse_jwks_source(item) for item in providers],
            issuers=_optional_str_list(data, "issuers", what),
            audiences=_optional_str_list(data, "audiences", what),
            lookup_locations=lookup_locations,
            reject_unauthenticated_requests=_optional_bool(
                data, "reject_unauthenticated_requests", what
            ),
            allowed_algorithms=allowed_algorithms,
            forward_token_to_upstream_header=_optional_str(
                data, "forward_token_to_upstream_header", what
            ),
            forward_claims_to_upstream_header=_optional_str(
                data, "forward_claims_to_upstream_header", what
            ),
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "jwks_providers": [provider.to_dict() for provider in self.jwks_providers]
        }
        if self.issuers is not None:
            result["issuers"] = list(self.issuers)
        if self.audiences is not None:
            result["audiences"] = list(self.audiences)
        if self.lookup_locations:
            result["lookup_locations"] = [loc.to_dict() for loc in self.lookup_locations]
        if self.reject_unauthenticated_requests is not None:
            result["reject_unauthenticated_requests"] = self.reject_unauthenticated_requests
        if self.allowed_algorithms is not None:
            result["allowed_algorithms"] = [alg.value for alg in self.allowed_algorithms]
        if self.forward_token_to_upstream_header is not None:
            result["forward_token_to_upstream_header"] = self.forward_token_to_upstream_header
        if self.forward_claims_to_upstream_header is not None:
            result["forward_claims_to_upstream_header"] = self.forward_claims_to_upstream_header
        return result