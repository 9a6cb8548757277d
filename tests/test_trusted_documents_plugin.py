import json
from http import HTTPStatus

import pytest

from gatewaykit.core import (
    GraphQLRequest,
    HttpRequest,
    LocalFileReference,
    ParsedGraphQLRequest,
    RequestExecutionContext,
)
from gatewaykit.trusted_documents.config import (
    ApolloManifestExtensionsProtocolConfig,
    DocumentIdProtocolConfig,
    FileStoreConfig,
    HttpGetProtocolConfig,
    TrustedDocumentsFileFormat,
    TrustedDocumentsPluginConfig,
)
from gatewaykit.trusted_documents.plugin import (
    NOT_FOUND_MESSAGE,
    TrustedDocumentsPlugin,
    TrustedDocumentsPluginError,
)

DOCUMENTS = {
    "key1": "query { __typename }",
    "broken": "query {",
    "mut": "mutation { doIt }",
}


def _config(protocols=None, allow_untrusted=None, contents=None):
    return TrustedDocumentsPluginConfig(
        store=FileStoreConfig(
            file=LocalFileReference(
                path="trusted_documents.json",
                contents=json.dumps(DOCUMENTS) if contents is None else contents,
            ),
            format=TrustedDocumentsFileFormat.JSON_KEY_VALUE,
        ),
        protocols=protocols if protocols is not None else [DocumentIdProtocolConfig()],
        allow_untrusted=allow_untrusted,
    )


def _post_ctx(body):
    return RequestExecutionContext(HttpRequest(method="POST", body=json.dumps(body)))


def test_create_fails_on_invalid_store():
    with pytest.raises(TrustedDocumentsPluginError):
        TrustedDocumentsPlugin.create(_config(contents="{"))


def test_create_builds_protocols_in_order():
    plugin = TrustedDocumentsPlugin.create(
        _config(
            protocols=[
                DocumentIdProtocolConfig(field_name="docId"),
                ApolloManifestExtensionsProtocolConfig(),
                HttpGetProtocolConfig(),
            ]
        )
    )
    assert len(plugin.protocols) == 3
    assert plugin.protocols[0].field_name == "docId"
    assert plugin.store.get_document("key1") == DOCUMENTS["key1"]


def test_known_document_is_resolved():
    plugin = TrustedDocumentsPlugin.create(_config())
    ctx = _post_ctx({"documentId": "key1", "variables": {"a": 1}, "operationName": "op"})
    plugin.on_downstream_http_request(ctx)
    assert ctx.short_circuit_response is None
    request = ctx.downstream_graphql_request.request
    assert request.operation == DOCUMENTS["key1"]
    assert request.variables == {"a": 1}
    assert request.operation_name == "op"


def test_unknown_document_is_rejected():
    plugin = TrustedDocumentsPlugin.create(_config())
    ctx = _post_ctx({"documentId": "missing"})
    plugin.on_downstream_http_request(ctx)
    assert ctx.downstream_graphql_request is None
    assert ctx.short_circuit_response.status == HTTPStatus.NOT_FOUND
    body = json.loads(ctx.short_circuit_response.body)
    assert body["errors"][0]["message"] == NOT_FOUND_MESSAGE


def test_unknown_document_allowed_when_untrusted_enabled():
    plugin = TrustedDocumentsPlugin.create(_config(allow_untrusted=True))
    ctx = _post_ctx({"documentId": "missing"})
    plugin.on_downstream_http_request(ctx)
    assert ctx.short_circuit_response is None
    assert ctx.downstream_graphql_request is None


def test_existing_graphql_request_is_left_alone():
    plugin = TrustedDocumentsPlugin.create(_config())
    ctx = _post_ctx({"documentId": "missing"})
    existing = ParsedGraphQLRequest.create_and_parse(GraphQLRequest(operation="{ a }"))
    ctx.downstream_graphql_request = existing
    plugin.on_downstream_http_request(ctx)
    assert ctx.downstream_graphql_request is existing
    assert ctx.short_circuit_response is None


def test_unparsable_stored_document_short_circuits():
    plugin = TrustedDocumentsPlugin.create(_config())
    ctx = _post_ctx({"documentId": "broken"})
    plugin.on_downstream_http_request(ctx)
    assert ctx.downstream_graphql_request is None
    assert ctx.short_circuit_response.status == HTTPStatus.BAD_REQUEST


def test_mutation_over_get_is_prevented():
    plugin = TrustedDocumentsPlugin.create(_config(protocols=[HttpGetProtocolConfig()]))
    ctx = RequestExecutionContext(HttpRequest(method="GET", query_string="documentId=mut"))
    plugin.on_downstream_http_request(ctx)
    assert ctx.downstream_graphql_request.request.operation == DOCUMENTS["mut"]
    assert ctx.short_circuit_response is None
    plugin.on_downstream_graphql_request(ctx)
    assert ctx.short_circuit_response.status == HTTPStatus.METHOD_NOT_ALLOWED


def test_query_over_get_is_not_prevented():
    plugin = TrustedDocumentsPlugin.create(_config(protocols=[HttpGetProtocolConfig()]))
    ctx = RequestExecutionContext(HttpRequest(method="GET", query_string="documentId=key1"))
    plugin.on_downstream_http_request(ctx)
    plugin.on_downstream_graphql_request(ctx)
    assert ctx.short_circuit_response is None
    assert ctx.downstream_graphql_request.request.operation == DOCUMENTS["key1"]