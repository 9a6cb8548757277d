# gatewaykit

Building blocks for the request pipeline of a GraphQL gateway. The plugins
work on a `RequestExecutionContext` from `gatewaykit.core`. A plugin may fill
in `ctx.downstream_graphql_request`, or it may end the request early with
`ctx.short_circuit(response)`, which stores the response in
`ctx.short_circuit_response`.

## Installation

```
pip install gatewaykit
```

## Modules

### `gatewaykit.core`

These are the shared primitives:

- `HttpRequest` and `HttpResponse` are dataclasses. Header names are stored in lower case, and a `str` body is encoded as UTF-8. `HttpRequest.json_body()` decodes the body as JSON. `HttpRequest.header(name)` looks a header up without regard to case.
- `GraphQLRequest` holds the document, the operation name, the variables and the extensions.
- `ParsedGraphQLRequest.create_and_parse(request)` checks the document. It finds the operations in the document, and raises `GraphQLParseError` when the document is malformed. `is_running_mutation()` tells whether the selected operation is a mutation.
- `GraphQLResponse.new_error(message)` builds an error body, and `.into_response(status)` turns it into an `HttpResponse` with a JSON body.
- `ExtractGraphQLOperationError` carries an `ExtractionErrorKind`. Its `.into_response(accept)` answers 200 when the accept value is `application/json` and 400 otherwise.
- `Plugin` is the base class. It has the hooks `on_downstream_http_request`, `on_downstream_graphql_request` and `on_downstream_http_response`, and each of them does nothing by default. `PluginError` is also defined here.
- There are helper functions:
  - `parse_query_string`
  - `extract_content_type` and `extract_accept`, which return the media type without parameters
  - `parse_json_object`
  - `parse_duration` and `format_duration`, for human-readable durations such as `"10m"` or `"1h 30s"`, measured in seconds.

### `gatewaykit.http_get`

- `HttpGetPlugin` reads GraphQL operations from the query string of `GET` requests. It uses the parameters `query`, `variables`, `operationName` and `extensions`.
- Extraction only happens when one of these holds:
  - the `Content-Type` is `application/x-www-form-urlencoded`
  - the `Accept` is `application/json`
  - the `Accept` is `application/graphql-response+json`
- A `GET` request with no content type and no matching accept is left for other plugins. Other failures end the request with an error response.
- Mutations over `GET` are answered with 405. To allow them, set `HttpGetPluginConfig(mutations=True)`. `HttpGetPluginConfig.from_dict` / `to_dict` read and write the configuration.
- `extract_graphql_from_get_request(request)` can be used on its own. It returns a `GraphQLRequest` or raises `ExtractGraphQLOperationError`.

### `gatewaykit.match_content_type`

`MatchContentTypePlugin` sets a `content-type` on a response that has none. The value comes from the request's `Accept` header:

| `Accept` header | `content-type` set |
|---|---|
| `application/json`, `*/*` or no header | `application/json` |
| `application/graphql-response+json` | `application/graphql-response+json` |

### `gatewaykit.trusted_documents`

This package handles persisted operations.

- `config`:
  - `TrustedDocumentsPluginConfig.from_dict` / `to_dict` read and write the plugin configuration.
  - `FileStoreConfig` describes the store. Its `path` may be a file path, which is read at once, or an object with `path` and `contents`.
  - The formats are given by `TrustedDocumentsFileFormat`: `apollo_persisted_query_manifest` and `json_key_value`.
  - The protocol configurations are `DocumentIdProtocolConfig`, `ApolloManifestExtensionsProtocolConfig` and `HttpGetProtocolConfig`. `parse_protocol` builds one of them from its tagged object.
  - `HttpGetParameterLocation` says where a parameter is read from: a query parameter, a path position or a header.
- `store`: `FilesystemStore.from_file_contents(contents, file_format)` builds an in-memory store and raises `StoreFormatError` on invalid contents. It provides `has_document`, `get_document` and `len()`.
- `protocols`: `DocumentIdProtocol`, `ApolloManifestProtocol` and `HttpGetProtocol` find a document id in a request. `HttpGetProtocol` also refuses mutations. The helpers `extract_header`, `extract_query_param` and `extract_path_position` are available too.
- `plugin`:
  - `TrustedDocumentsPlugin.create(config)` builds the store and the protocols. It raises `TrustedDocumentsPluginError` when the store is invalid.
  - A document that is found is parsed and becomes the GraphQL request.
  - Otherwise the request is answered with 404, unless `allow_untrusted` is true.

### `gatewaykit.jwt_auth`

- `config`:
  - `JwtAuthPluginConfig.from_dict` / `to_dict` read and write the configuration, which covers the JWKS providers, issuers, audiences, lookup locations, allowed `Algorithm`s and forwarding headers.
  - The lookup locations are `HeaderLookup`, `QueryParamLookup` and `CookieLookup`.
  - The key sources are `LocalJwksSource` and `RemoteJwksSource`. A remote source has a `cache_duration`, which defaults to 10 minutes.
  - Defaults come from `default_lookup_locations()`, which is the `Authorization` header with a `Bearer` prefix, and from `default_allowed_algorithms()`.
- `jwks_provider`:
  - `JwksProvider` loads a key set from its source and caches it. A remote set expires after its cache duration.
  - The methods are `retrieve_jwk_set()`, `load_jwks()`, `needs_refetch()` and `can_prefetch()`.
  - The fetch function and the clock can be passed in.
  - `parse_jwk_set` checks the structure of a JWKS document.

### `gatewaykit.telemetry`

- `config`:
  - `TelemetryPluginConfig.from_dict` / `to_dict` read and write the configuration. The service name defaults to `conductor`.
  - The targets are `StdoutTarget`, `ZipkinTarget`, `OtlpTarget` (with `OtlpProtocol`) and `DatadogTarget`. `parse_target` builds one of them from its tagged object.
- `reporters`:
  - `SpanRecord` and `EventRecord` describe finished spans.
  - `ConsoleReporter` logs spans.
  - `DatadogReporter` converts spans to the Datadog agent's msgpack format and posts them to `http://<agent>/v0.4/traces`. A custom sender can be given. Failures are logged and not raised.

### `gatewaykit.vrl`

`config.VrlPluginConfig` attaches script programs to the four hooks:

- `on_downstream_http_request`
- `on_downstream_graphql_request`
- `on_upstream_http_request`
- `on_downstream_http_response`

A program is given inline as `InlineVrlSource` or as a file as `FileVrlSource`. `parse_vrl_reference` builds either one from its tagged object. `VrlPluginConfig.examples()` returns sample configurations.

## Example

```python
from gatewaykit.core import HttpRequest, RequestExecutionContext
from gatewaykit.http_get import HttpGetPlugin, HttpGetPluginConfig

plugin = HttpGetPlugin(HttpGetPluginConfig())
request = HttpRequest(
    method="GET",
    uri="/graphql",
    query_string="query=query%20%7B%20__typename%20%7D",
    headers={"content-type": "application/x-www-form-urlencoded"},
)
ctx = RequestExecutionContext(downstream_http_request=request)
plugin.on_downstream_http_request(ctx)
print(ctx.downstream_graphql_request.request.operation)  # query { __typename }
```

Trusted documents from a key/value file:

```python
from gatewaykit.trusted_documents.config import TrustedDocumentsFileFormat
from gatewaykit.trusted_documents.store import FilesystemStore

store = FilesystemStore.from_file_contents(
    '{"key1": "query { __typename }"}', TrustedDocumentsFileFormat.JSON_KEY_VALUE
)
assert store.get_document("key1") == "query { __typename }"
```

## What this package does not do

- It is a library, not a gateway. It runs no HTTP server, and it does not forward requests to upstream GraphQL services.
- The GraphQL check in `ParsedGraphQLRequest` is light. It finds the operations in a document and their types, and it rejects malformed documents. It does not validate against a schema.
- `gatewaykit.jwt_auth` covers configuration and loading key sets only. It does not decode or verify tokens.
- `gatewaykit.telemetry` has configuration models for the Zipkin and OTLP targets, but no exporters for them. Only the console and Datadog reporters send anything.
- `gatewaykit.vrl` holds the configuration of the script hooks. It does not compile or run scripts.

## Running the tests

```
pip install -e ".[test]"
pytest
```