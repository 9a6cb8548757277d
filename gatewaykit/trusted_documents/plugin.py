"""Plugin that only lets trusted (persisted) GraphQL documents run."""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Sequence

from gatewaykit.core import (
    ExtractGraphQLOperationError,
    ExtractionErrorKind,
    GraphQLParseError,
    GraphQLRequest,
    GraphQLResponse,
    ParsedGraphQLRequest,
    Plugin,
    PluginError,
    RequestExecutionContext,
)
from gatewaykit.trusted_documents.config import (
    ApolloManifestExtensionsProtocolConfig,
    DocumentIdProtocolConfig,
    HttpGetProtocolConfig,
    ProtocolConfig,
    TrustedDocumentsPluginConfig,
)
from gatewaykit.trusted_documents.protocols import (
    ApolloManifestProtocol,
    DocumentIdProtocol,
    HttpGetProtocol,
    TrustedDocumentsProtocol,
)
from gatewaykit.trusted_documents.store import (
    FilesystemStore,
    StoreFormatError,
    TrustedDocumentsStore,
)

logger = logging.getLogger(__name__)

NOT_FOUND_MESSAGE = "trusted document not found"


class TrustedDocumentsPluginError(PluginError):
    """Raised when the trusted documents plugin cannot be created."""


def _build_protocol(config: ProtocolConfig) -> TrustedDocumentsProtocol:
    if isinstance(config, DocumentIdProtocolConfig):
        logger.debug("adding document_id protocol with field_name: %s", config.field_name)
        return DocumentIdProtocol(field_name=config.field_name)
    if isinstance(config, ApolloManifestExtensionsProtocolConfig):
        logger.debug("adding apollo_manifest_extensions protocol")
        return ApolloManifestProtocol()
    if isinstance(config, HttpGetProtocolConfig):
        logger.debug("adding http_get protocol")
        return HttpGetProtocol(
            document_id_from=config.document_id_from,
            variables_from=config.variables_from,
            operation_name_from=config.operation_name_from,
        )
    raise TrustedDocumentsPluginError(f"unsupported protocol configuration: {config!r}")


class TrustedDocumentsPlugin(Plugin):
    """Resolves incoming document ids against a store of trusted documents."""

    def __init__(
        self,
        config: TrustedDocumentsPluginConfig,
        store: TrustedDocumentsStore,
        protocols: Sequence[TrustedDocumentsProtocol],
    ) -> None:
        self.config = config
        self.store = store
        self.protocols = list(protocols)

    @classmethod
    def create(cls, config: TrustedDocumentsPluginConfig) -> "TrustedDocumentsPlugin":
        """Build the plugin; raises TrustedDocumentsPluginError when the store is invalid."""
        logger.debug("creating trusted documents plugin")
        try:
            store = FilesystemStore.from_file_contents(
                config.store.file.contents, config.store.format
            )
        except StoreFormatError as exc:
            raise TrustedDocumentsPluginError(f"failed to create store: {exc}") from exc
        protocols = [_build_protocol(protocol) for protocol in config.protocols]
        return cls(config, store, protocols)

    def on_downstream_http_request(self, ctx: RequestExecutionContext) -> None:
        if ctx.downstream_graphql_request is not None:
            return

        for protocol in self.protocols:
            extracted = protocol.try_extraction(ctx)
            if extracted is None:
                continue
            document = self.store.get_document(extracted.hash)
            if document is None:
                logger.warning("trusted document with id %r not found", extracted.hash)
                continue
            try:
                ctx.downstream_graphql_request = ParsedGraphQLRequest.create_and_parse(
                    GraphQLRequest(
                        operation=document,
                        operation_name=extracted.operation_name,
                        variables=extracted.variables,
                        extensions=extracted.extensions,
                    )
                )
            except GraphQLParseError as exc:
                logger.warning(
                    "failed to parse stored document with key %r: %s", extracted.hash, exc
                )
                error = ExtractGraphQLOperationError(
                    ExtractionErrorKind.GRAPHQL_PARSER_ERROR, str(exc)
                )
                ctx.short_circuit(error.into_response(None))
            return

        if self.config.allow_untrusted is not True:
            logger.error("untrusted documents are not allowed, rejecting the request")
            ctx.short_circuit(
                GraphQLResponse.new_error(NOT_FOUND_MESSAGE).into_response(HTTPStatus.NOT_FOUND)
            )

    def on_downstream_graphql_request(self, ctx: RequestExecutionContext) -> None:
        for protocol in self.protocols:
            response = protocol.should_prevent_execution(ctx)
            if response is not None:
                logger.warning("trusted document execution was prevented by %r", protocol)
                ctx.short_circuit(response)