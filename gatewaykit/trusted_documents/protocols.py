"""Protocols that read a trusted document id from an incoming request."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from http import HTTPStatus
from typing import Any, Mapping, Optional

from gatewaykit.core import (
    GraphQLResponse,
    HttpRequest,
    HttpResponse,
    RequestExecutionContext,
    parse_json_object,
    parse_query_string,
)
from gatewaykit.trusted_documents.config import (
    DOCUMENT_ID_DEFAULT_FIELD_NAME,
    HttpGetParameterLocation,
    ParameterSource,
)

logger = logging.getLogger(__name__)


@dataclass
class ExtractedTrustedDocument:
    """A document hash taken from a request, with the parameters sent alongside it."""

    hash: str
    variables: Optional[dict[str, Any]] = None
    operation_name: Optional[str] = None
    extensions: Optional[dict[str, Any]] = None


class TrustedDocumentsProtocol(ABC):
    """A way of carrying a trusted document id in an HTTP request."""

    @abstractmethod
    def try_extraction(self, ctx: RequestExecutionContext) -> Optional[ExtractedTrustedDocument]:
        """The document found in the request, or None when this protocol does not apply."""

    def should_prevent_execution(self, ctx: RequestExecutionContext) -> Optional[HttpResponse]:
        """A response that stops execution, or None to let it go on."""
        return None


def _json_body(request: HttpRequest) -> Any:
    try:
        return request.json_body()
    except ValueError:
        return None


def _optional_object(data: Mapping[str, Any], key: str) -> tuple[bool, Optional[dict[str, Any]]]:
    """Read an optional object field strictly: (ok, value)."""
    value = data.get(key)
    if value is None:
        return True, None
    if isinstance(value, dict):
        return True, value
    return False, None


class ApolloManifestProtocol(TrustedDocumentsProtocol):
    """Hash sent as `extensions.persistedQuery.sha256Hash` in a POST body."""

    def try_extraction(self, ctx: RequestExecutionContext) -> Optional[ExtractedTrustedDocument]:
        request = ctx.downstream_http_request
        if request.method != "POST":
            return None
        logger.debug("request http method is post, trying to extract from body...")
        message = _json_body(request)
        if not isinstance(message, dict):
            return None

        ok, variables = _optional_object(message, "variables")
        if not ok:
            return None
        operation_name = message.get("operationName")
        if operation_name is not None and not isinstance(operation_name, str):
            return None
        extensions = message.get("extensions")
        if not isinstance(extensions, dict):
            return None
        persisted_query = extensions.get("persistedQuery")
        if not isinstance(persisted_query, dict):
            return None
        document_hash = persisted_query.get("sha256Hash")
        if not isinstance(document_hash, str):
            return None

        other = {key: value for key, value in extensions.items() if key != "persistedQuery"}
        logger.info("extracted incoming persisted operation from request")
        return ExtractedTrustedDocument(
            hash=document_hash,
            variables=variables,
            operation_name=operation_name,
            extensions=other,
        )


@dataclass
class DocumentIdProtocol(TrustedDocumentsProtocol):
    """Document id sent in a named field of a JSON POST body."""

    field_name: str = DOCUMENT_ID_DEFAULT_FIELD_NAME

    def try_extraction(self, ctx: RequestExecutionContext) -> Optional[ExtractedTrustedDocument]:
        request = ctx.downstream_http_request
        if request.method != "POST":
            return None
        logger.debug("request http method is post, trying to extract from body...")
        root = _json_body(request)
        if not isinstance(root, dict):
            return None
        document_id = root.get(self.field_name)
        if not isinstance(document_id, str):
            return None

        logger.info("extracted incoming trusted document from request")
        variables = root.get("variables")
        operation_name = root.get("operationName")
        extensions = root.get("extensions")
        return ExtractedTrustedDocument(
            hash=document_id,
            variables=variables if isinstance(variables, dict) else None,
            operation_name=operation_name if isinstance(operation_name, str) else None,
            extensions=extensions if isinstance(extensions, dict) else None,
        )


def extract_header(headers: Mapping[str, str], name: str) -> Optional[str]:
    """The value of a header, matched case-insensitively."""
    wanted = name.lower()
    return next((value for key, value in headers.items() if key.lower() == wanted), None)


def extract_path_position(path: str, position: int) -> Optional[str]:
    """The path segment at the given position, counting the part before the first '/'."""
    segments = path.split("/")
    return segments[position] if 0 <= position < len(segments) else None


def extract_query_param(query: str, name: str) -> Optional[str]:
    """The decoded value of a query string parameter."""
    return parse_query_string(query).get(name)


def _extract_parameter(location: HttpGetParameterLocation, request: HttpRequest) -> Optional[str]:
    if location.source is ParameterSource.HEADER:
        return extract_header(request.headers, location.name)
    if location.source is ParameterSource.QUERY:
        return extract_query_param(request.query_string, location.name)
    return extract_path_position(request.uri, location.position)


@dataclass
class HttpGetProtocol(TrustedDocumentsProtocol):
    """Document id and parameters read from a GET request; mutations are refused."""

    document_id_from: HttpGetParameterLocation = field(
        default_factory=HttpGetParameterLocation.document_id_default
    )
    variables_from: HttpGetParameterLocation = field(
        default_factory=HttpGetParameterLocation.variables_default
    )
    operation_name_from: HttpGetParameterLocation = field(
        default_factory=HttpGetParameterLocation.operation_name_default
    )

    def try_extraction(self, ctx: RequestExecutionContext) -> Optional[ExtractedTrustedDocument]:
        request = ctx.downstream_http_request
        if request.method != "GET":
            return None
        document_id = _extract_parameter(self.document_id_from, request)
        if document_id is None:
            return None

        logger.info("extracted incoming trusted document from request")
        raw_variables = _extract_parameter(self.variables_from, request)
        variables = None
        if raw_variables is not None:
            try:
                variables = parse_json_object(raw_variables)
            except ValueError:
                variables = None
        return ExtractedTrustedDocument(
            hash=document_id,
            variables=variables,
            operation_name=_extract_parameter(self.operation_name_from, request),
            extensions=None,
        )

    def should_prevent_execution(self, ctx: RequestExecutionContext) -> Optional[HttpResponse]:
        if ctx.downstream_http_request.method != "GET":
            return None
        gql_request = ctx.downstream_graphql_request
        if gql_request is not None and gql_request.is_running_mutation():
            logger.debug("preventing mutation from a trusted document sent over GET")
            return GraphQLResponse.new_error("mutations are not allowed over GET").into_response(
                HTTPStatus.METHOD_NOT_ALLOWED
            )
        return None