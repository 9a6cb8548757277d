"""Shared HTTP, GraphQL and plugin primitives used by the gateway plugins."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from enum import Enum
from http import HTTPStatus
from typing import Any, Mapping, Optional
from urllib.parse import parse_qsl

APPLICATION_JSON = "application/json"
APPLICATION_GRAPHQL_JSON = "application/graphql-response+json"
APPLICATION_WWW_FORM_URLENCODED = "application/x-www-form-urlencoded"
CONTENT_TYPE = "content-type"
ACCEPT = "accept"


def _normalize_headers(headers: Mapping[str, str]) -> dict[str, str]:
    return {str(name).lower(): str(value) for name, value in headers.items()}


def _lookup_header(headers: Mapping[str, str], name: str) -> Optional[str]:
    wanted = name.lower()
    for key, value in headers.items():
        if key.lower() == wanted:
            return value
    return None


@dataclass
class HttpRequest:
    """An HTTP request as seen by the gateway; header names are stored lower case."""

    method: str = "GET"
    uri: str = "/"
    query_string: str = ""
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    def __post_init__(self) -> None:
        self.method = self.method.upper()
        self.headers = _normalize_headers(self.headers)
        if isinstance(self.body, str):
            self.body = self.body.encode("utf-8")

    def json_body(self) -> Any:
        """Decode the body as JSON; raises ValueError when it is not valid JSON."""
        return json.loads(self.body)

    def header(self, name: str) -> Optional[str]:
        """Return a header value, looked up case-insensitively."""
        return _lookup_header(self.headers, name)


@dataclass
class HttpResponse:
    """An HTTP response produced by the gateway; header names are stored lower case."""

    status: int = HTTPStatus.OK
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    def __post_init__(self) -> None:
        self.status = int(self.status)
        self.headers = _normalize_headers(self.headers)
        if isinstance(self.body, str):
            self.body = self.body.encode("utf-8")


@dataclass
class LocalFileReference:
    """A file on the local file-system, with its contents already loaded."""

    path: str
    contents: str = ""


@dataclass
class GraphQLRequest:
    """A raw GraphQL request: the document and its optional parameters."""

    operation: str
    operation_name: Optional[str] = None
    variables: Optional[dict[str, Any]] = None
    extensions: Optional[dict[str, Any]] = None


class GraphQLParseError(ValueError):
    """Raised when a GraphQL document cannot be parsed."""


_NAME_RE = re.compile(r"[_A-Za-z][_0-9A-Za-z]*")
_NUMBER_RE = re.compile(r"-?(?:0|[1-9][0-9]*)(?:\.[0-9]+)?(?:[eE][+-]?[0-9]+)?")
_STRING_RE = re.compile(r'"(?:[^"\\\n\r]|\\.)*"')
_PUNCTUATORS = frozenset("!$&()[]{}:=@|")
_IGNORED = frozenset(" \t\r\n,\ufeff")
_OPERATION_TYPES = frozenset({"query", "mutation", "subscription"})
_CLOSERS = {"(": ")", "[": "]", "{": "}"}
_CLOSING = frozenset(_CLOSERS.values())


@dataclass(frozen=True)
class _Token:
    kind: str
    value: str
    position: int

    def is_punct(self, value: str) -> bool:
        return self.kind == "punct" and self.value == value


@dataclass(frozen=True)
class _OperationDefinition:
    operation_type: str
    name: Optional[str]


def _find_block_string_end(source: str, start: int) -> int:
    pos = start
    while True:
        index = source.find('"""', pos)
        if index < 0:
            raise GraphQLParseError("unterminated block string")
        if source[index - 1] == "\\":
            pos = index + 3
            continue
        return index + 3


def _tokenize(source: str) -> list[_Token]:
    tokens: list[_Token] = []
    pos = 0
    end = len(source)
    while pos < end:
        char = source[pos]
        if char in _IGNORED:
            pos += 1
            continue
        if char == "#":
            newline = source.find("\n", pos)
            pos = end if newline < 0 else newline
            continue
        if char in _PUNCTUATORS:
            tokens.append(_Token("punct", char, pos))
            pos += 1
            continue
        if source.startswith("...", pos):
            tokens.append(_Token("punct", "...", pos))
            pos += 3
            continue
        if source.startswith('"""', pos):
            close = _find_block_string_end(source, pos + 3)
            tokens.append(_Token("string", source[pos:close], pos))
            pos = close
            continue
        for kind, pattern in (("name", _NAME_RE), ("number", _NUMBER_RE), ("string", _STRING_RE)):
            match = pattern.match(source, pos)
            if match:
                tokens.append(_Token(kind, match.group(), pos))
                pos = match.end()
                break
        else:
            raise GraphQLParseError(f"unexpected character {char!r} at position {pos}")
    return tokens


class _DocumentParser:
    def __init__(self, tokens: list[_Token]) -> None:
        self._tokens = tokens
        self._pos = 0

    def _peek(self, offset: int = 0) -> Optional[_Token]:
        index = self._pos + offset
        return self._tokens[index] if index < len(self._tokens) else None

    def _next(self) -> _Token:
        token = self._peek()
        if token is None:
            raise GraphQLParseError("unexpected end of document")
        self._pos += 1
        return token

    def _expect_name(self, value: Optional[str] = None) -> str:
        token = self._next()
        if token.kind != "name" or (value is not None and token.value != value):
            expected = value or "a name"
            raise GraphQLParseError(
                f"expected {expected}, found {token.value!r} at position {token.position}"
            )
        return token.value

    def _skip_group(self) -> None:
        opener = self._next()
        stack = [_CLOSERS[opener.value]]
        while stack:
            token = self._next()
            if token.kind != "punct":
                continue
            if token.value in _CLOSERS:
                stack.append(_CLOSERS[token.value])
            elif token.value in _CLOSING and token.value != stack.pop():
                raise GraphQLParseError(
                    f"unbalanced {token.value!r} at position {token.position}"
                )

    def _selection_set(self) -> None:
        token = self._peek()
        if token is None or not token.is_punct("{"):
            raise GraphQLParseError("expected a selection set")
        following = self._peek(1)
        if following is not None and following.is_punct("}"):
            raise GraphQLParseError(f"empty selection set at position {token.position}")
        self._skip_group()

    def _skip_to_selection_set(self) -> None:
        while True:
            token = self._peek()
            if token is None:
                raise GraphQLParseError("unexpected end of document")
            if token.is_punct("{"):
                return
            if token.kind == "punct" and token.value in ("(", "["):
                self._skip_group()
            elif token.kind == "punct" and token.value in _CLOSING:
                raise GraphQLParseError(
                    f"unbalanced {token.value!r} at position {token.position}"
                )
            else:
                self._pos += 1

    def parse(self) -> list[_OperationDefinition]:
        if not self._tokens:
            raise GraphQLParseError("document contains no definitions")
        operations: list[_OperationDefinition] = []
        while (token := self._peek()) is not None:
            if token.is_punct("{"):
                self._selection_set()
                operations.append(_OperationDefinition("query", None))
            elif token.kind == "name" and token.value in _OPERATION_TYPES:
                self._pos += 1
                name = None
                following = self._peek()
                if following is not None and following.kind == "name":
                    name = following.value
                    self._pos += 1
                self._skip_to_selection_set()
                self._selection_set()
                operations.append(_OperationDefinition(token.value, name))
            elif token.kind == "name" and token.value == "fragment":
                self._pos += 1
                if self._expect_name() == "on":
                    raise GraphQLParseError("a fragment cannot be named 'on'")
                self._expect_name("on")
                self._expect_name()
                self._skip_to_selection_set()
                self._selection_set()
            else:
                raise GraphQLParseError(
                    f"unexpected {token.value!r} at position {token.position}"
                )
        if not operations:
            raise GraphQLParseError("document contains no operations")
        return operations


@dataclass
class ParsedGraphQLRequest:
    """A GraphQL request together with the operations found in its document."""

    request: GraphQLRequest
    operations: list[_OperationDefinition]

    @classmethod
    def create_and_parse(cls, request: GraphQLRequest) -> "ParsedGraphQLRequest":
        """Parse the request's document; raises GraphQLParseError when it is invalid."""
        return cls(request, _DocumentParser(_tokenize(request.operation)).parse())

    def _executable_operation(self) -> Optional[_OperationDefinition]:
        name = self.request.operation_name
        if name is not None:
            return next((op for op in self.operations if op.name == name), None)
        if len(self.operations) == 1:
            return self.operations[0]
        return None

    def is_running_mutation(self) -> bool:
        """Whether the operation to execute is a mutation."""
        operation = self._executable_operation()
        return operation is not None and operation.operation_type == "mutation"


@dataclass
class GraphQLResponse:
    """A GraphQL response body."""

    data: Any = None
    errors: Optional[list[dict[str, Any]]] = None
    extensions: Optional[dict[str, Any]] = None

    @classmethod
    def new_error(cls, message: str) -> "GraphQLResponse":
        return cls(errors=[{"message": message}])

    def into_response(self, status: int = HTTPStatus.OK) -> HttpResponse:
        payload = {
            key: value
            for key, value in (
                ("data", self.data),
                ("errors", self.errors),
                ("extensions", self.extensions),
            )
            if value is not None
        }
        return HttpResponse(status=status, body=json.dumps(payload).encode("utf-8"))


class ExtractionErrorKind(Enum):
    """Reasons a GraphQL operation could not be taken from an HTTP request."""

    EMPTY_EXTRACTION = "no GraphQL operation found in the request"
    MISSING_QUERY_PARAMETER = "missing query parameter"
    INVALID_QUERY_PARAMETER_ENCODING = "invalid query parameter encoding"
    INVALID_VARIABLES_JSON_FORMAT = "invalid variables JSON format"
    INVALID_EXTENSIONS_JSON_FORMAT = "invalid extensions JSON format"
    INVALID_CONTENT_TYPE_HEADER = "invalid content-type header"
    GRAPHQL_PARSER_ERROR = "failed to parse GraphQL operation"


class ExtractGraphQLOperationError(Exception):
    """Raised when a GraphQL operation cannot be extracted from a request."""

    def __init__(self, kind: ExtractionErrorKind, detail: Optional[str] = None) -> None:
        self.kind = kind
        self.detail = detail
        message = kind.value if detail is None else f"{kind.value}: {detail}"
        super().__init__(message)

    def into_response(self, accept: Optional[str] = None) -> HttpResponse:
        """Build the error response; plain JSON clients get 200, others 400."""
        status = HTTPStatus.OK if accept == APPLICATION_JSON else HTTPStatus.BAD_REQUEST
        return GraphQLResponse.new_error(str(self)).into_response(status)


@dataclass
class RequestExecutionContext:
    """State shared by the plugins while one downstream request is handled."""

    downstream_http_request: HttpRequest
    downstream_graphql_request: Optional[ParsedGraphQLRequest] = None
    short_circuit_response: Optional[HttpResponse] = None

    def short_circuit(self, response: HttpResponse) -> None:
        """Stop the pipeline and answer with the given response."""
        self.short_circuit_response = response


class Plugin:
    """Base class for gateway plugins; every hook does nothing by default."""

    def on_downstream_http_request(self, ctx: RequestExecutionContext) -> None:
        return None

    def on_downstream_graphql_request(self, ctx: RequestExecutionContext) -> None:
        return None

    def on_downstream_http_response(
        self, ctx: RequestExecutionContext, response: HttpResponse
    ) -> None:
        return None


class PluginError(Exception):
    """Raised when a plugin cannot be created."""


def parse_query_string(query: str) -> dict[str, str]:
    """Decode a URL query string; a repeated key keeps its last value."""
    return dict(parse_qsl(query, keep_blank_values=True))


_MIME_RE = re.compile(r"[\w.+*-]+/[\w.+*-]+")


def _mime_essence(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    essence = value.split(",", 1)[0].split(";", 1)[0].strip().lower()
    return essence if _MIME_RE.fullmatch(essence) else None


def extract_content_type(headers: Mapping[str, str]) -> Optional[str]:
    """The media type of the Content-Type header, without parameters."""
    return _mime_essence(_lookup_header(headers, CONTENT_TYPE))


def extract_accept(headers: Mapping[str, str]) -> Optional[str]:
    """The first media type of the Accept header, without parameters."""
    return _mime_essence(_lookup_header(headers, ACCEPT))


def parse_json_object(text: str) -> dict[str, Any]:
    """Parse text that must hold a JSON object; raises ValueError otherwise."""
    value = json.loads(text)
    if not isinstance(value, dict):
        raise ValueError("expected a JSON object")
    return value


_NANOS_PER_SECOND = 1_000_000_000
_DURATION_UNITS = {
    **dict.fromkeys(("ns", "nsec", "nanos"), 1),
    **dict.fromkeys(("us", "usec", "micros"), 1_000),
    **dict.fromkeys(("ms", "msec", "millis"), 1_000_000),
    **dict.fromkeys(("s", "sec", "secs", "second", "seconds"), _NANOS_PER_SECOND),
    **dict.fromkeys(("m", "min", "mins", "minute", "minutes"), 60 * _NANOS_PER_SECOND),
    **dict.fromkeys(("h", "hr", "hrs", "hour", "hours"), 3_600 * _NANOS_PER_SECOND),
    **dict.fromkeys(("d", "day", "days"), 86_400 * _NANOS_PER_SECOND),
    **dict.fromkeys(("w", "week", "weeks"), 604_800 * _NANOS_PER_SECOND),
}
_FORMAT_UNITS = (
    ("d", 86_400 * _NANOS_PER_SECOND),
    ("h", 3_600 * _NANOS_PER_SECOND),
    ("m", 60 * _NANOS_PER_SECOND),
    ("s", _NANOS_PER_SECOND),
    ("ms", 1_000_000),
    ("us", 1_000),
    ("ns", 1),
)
_DURATION_PART = re.compile(r"\s*(\d+)\s*([A-Za-z]+)")


def parse_duration(text: str) -> float:
    """Parse a human-readable duration such as "10m" or "1h 30s" into seconds."""
    text = text.strip()
    if not text:
        raise ValueError("empty duration")
    total = 0
    pos = 0
    while pos < len(text):
        match = _DURATION_PART.match(text, pos)
        if not match:
            raise ValueError(f"invalid duration: {text!r}")
        unit = _DURATION_UNITS.get(match.group(2))
        if unit is None:
            raise ValueError(f"unknown duration unit {match.group(2)!r}")
        total += int(match.group(1)) * unit
        pos = match.end()
    return total / _NANOS_PER_SECOND


def format_duration(seconds: float) -> str:
    """Format seconds as a human-readable duration accepted by parse_duration."""
    if seconds < 0:
        raise ValueError("duration cannot be negative")
    remaining = round(seconds * _NANOS_PER_SECOND)
    if remaining == 0:
        return "0s"
    parts = []
    for unit, size in _FORMAT_UNITS:
        count, remaining = divmod(remaining, size)
        if count:
            parts.append(f"{count}{unit}")
    return " ".join(parts)