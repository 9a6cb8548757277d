"""Configuration of the trusted documents plugin."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Mapping, Optional, Union

from gatewaykit.core import LocalFileReference

DOCUMENT_ID_DEFAULT_FIELD_NAME = "documentId"


def _expect_mapping(data: Any, what: str) -> Mapping[str, Any]:
    if not isinstance(data, Mapping):
        raise ValueError(f"{what} must be an object")
    return data


def _require(data: Mapping[str, Any], key: str, kind: type, what: str) -> Any:
    if key not in data:
        raise ValueError(f"{what}: missing field '{key}'")
    value = data[key]
    if kind is int and isinstance(value, bool):
        raise ValueError(f"{what}: field '{key}' must be an integer")
    if not isinstance(value, kind):
        raise ValueError(f"{what}: field '{key}' has the wrong type")
    return value


@dataclass(frozen=True)
class ApolloPersistedQueryManifestRecord:
    """One operation listed in an Apollo persisted query manifest."""

    id: str
    body: str
    name: str
    operation_type: str

    @classmethod
    def from_dict(cls, data: Any) -> "ApolloPersistedQueryManifestRecord":
        what = "manifest operation"
        data = _expect_mapping(data, what)
        return cls(
            id=_require(data, "id", str, what),
            body=_require(data, "body", str, what),
            name=_require(data, "name", str, what),
            operation_type=_require(data, "type", str, what),
        )


@dataclass(frozen=True)
class ApolloPersistedQueryManifest:
    """An Apollo persisted query manifest file."""

    format: str
    version: int
    operations: list[ApolloPersistedQueryManifestRecord] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> "ApolloPersistedQueryManifest":
        """Build a manifest from decoded JSON; raises ValueError on a bad structure."""
        what = "persisted query manifest"
        data = _expect_mapping(data, what)
        operations = _require(data, "operations", list, what)
        return cls(
            format=_require(data, "format", str, what),
            version=_require(data, "version", int, what),
            operations=[ApolloPersistedQueryManifestRecord.from_dict(op) for op in operations],
        )


class TrustedDocumentsFileFormat(str, Enum):
    """The structure of a file-based trusted documents store."""

    APOLLO_PERSISTED_QUERY_MANIFEST = "apollo_persisted_query_manifest"
    JSON_KEY_VALUE = "json_key_value"

    @classmethod
    def parse(cls, value: Any) -> "TrustedDocumentsFileFormat":
        try:
            return cls(value)
        except ValueError as exc:
            raise ValueError(f"unknown trusted documents file format: {value!r}") from exc


class ParameterSource(str, Enum):
    """Where in an HTTP GET request a parameter is found."""

    QUERY = "search_query"
    PATH = "path"
    HEADER = "header"


@dataclass(frozen=True)
class HttpGetParameterLocation:
    """The location of one request parameter: a query parameter, path segment or header."""

    source: ParameterSource
    name: Optional[str] = None
    position: Optional[int] = None

    def __post_init__(self) -> None:
        if self.source is ParameterSource.PATH:
            if (
                not isinstance(self.position, int)
                or isinstance(self.position, bool)
                or self.position < 0
            ):
                raise ValueError("a path location needs a non-negative integer 'position'")
        elif not isinstance(self.name, str):
            raise ValueError(f"a {self.source.value} location needs a string 'name'")

    @classmethod
    def from_dict(cls, data: Any) -> "HttpGetParameterLocation":
        data = _expect_mapping(data, "parameter location")
        try:
            source = ParameterSource(data.get("source"))
        except ValueError as exc:
            raise ValueError(f"unknown parameter source: {data.get('source')!r}") from exc
        if source is ParameterSource.PATH:
            return cls(source, position=data.get("position"))
        return cls(source, name=data.get("name"))

    def to_dict(self) -> dict[str, Any]:
        if self.source is ParameterSource.PATH:
            return {"source": self.source.value, "position": self.position}
        return {"source": self.source.value, "name": self.name}

    @classmethod
    def document_id_default(cls) -> "HttpGetParameterLocation":
        return cls(ParameterSource.QUERY, name=DOCUMENT_ID_DEFAULT_FIELD_NAME)

    @classmethod
    def variables_default(cls) -> "HttpGetParameterLocation":
        return cls(ParameterSource.QUERY, name="variables")

    @classmethod
    def operation_name_default(cls) -> "HttpGetParameterLocation":
        return cls(ParameterSource.QUERY, name="operationName")


@dataclass(frozen=True)
class ApolloManifestExtensionsProtocolConfig:
    """Document hash sent in the `extensions.persistedQuery` field of a POST body."""

    TYPE = "apollo_manifest_extensions"

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.TYPE}


@dataclass(frozen=True)
class DocumentIdProtocolConfig:
    """Document id sent in a field of a JSON POST body."""

    TYPE = "document_id"

    field_name: str = DOCUMENT_ID_DEFAULT_FIELD_NAME

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.TYPE, "field_name": self.field_name}


@dataclass(frozen=True)
class HttpGetProtocolConfig:
    """Document id and parameters taken from an HTTP GET request; mutations are refused."""

    TYPE = "http_get"

    document_id_from: HttpGetParameterLocation = field(
        default_factory=HttpGetParameterLocation.document_id_default
    )
    variables_from: HttpGetParameterLocation = field(
        default_factory=HttpGetParameterLocation.variables_default
    )
    operation_name_from: HttpGetParameterLocation = field(
        default_factory=HttpGetParameterLocation.operation_name_default
    )

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.TYPE,
            "document_id_from": self.document_id_from.to_dict(),
            "variables_from": self.variables_from.to_dict(),
            "operation_name_from": self.operation_name_from.to_dict(),
        }


ProtocolConfig = Union[
    ApolloManifestExtensionsProtocolConfig, DocumentIdProtocolConfig, HttpGetProtocolConfig
]


def parse_protocol(data: Any) -> ProtocolConfig:
    """Build a protocol configuration from its `type`-tagged object."""
    data = _expect_mapping(data, "protocol")
    kind = data.get("type")
    if kind == ApolloManifestExtensionsProtocolConfig.TYPE:
        return ApolloManifestExtensionsProtocolConfig()
    if kind == DocumentIdProtocolConfig.TYPE:
        field_name = data.get("field_name", DOCUMENT_ID_DEFAULT_FIELD_NAME)
        if not isinstance(field_name, str):
            raise ValueError("protocol: field 'field_name' must be a string")
        return DocumentIdProtocolConfig(field_name=field_name)
    if kind == HttpGetProtocolConfig.TYPE:
        locations = {
            key: HttpGetParameterLocation.from_dict(data[key])
            for key in ("document_id_from", "variables_from", "operation_name_from")
            if key in data
        }
        return HttpGetProtocolConfig(**locations)
    raise ValueError(f"unknown trusted documents protocol type: {kind!r}")


def _load_file_reference(value: Any) -> LocalFileReference:
    if isinstance(value, LocalFileReference):
        return value
    if isinstance(value, Mapping):
        path = _require(value, "path", str, "file reference")
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
    raise ValueError("file store: field 'path' must be a string")


@dataclass(frozen=True)
class FileStoreConfig:
    """A store loaded once from a local file in the given format."""

    SOURCE = "file"

    file: LocalFileReference
    format: TrustedDocumentsFileFormat

    @classmethod
    def from_dict(cls, data: Any) -> "FileStoreConfig":
        data = _expect_mapping(data, "store")
        if data.get("source") != cls.SOURCE:
            raise ValueError(f"unknown trusted documents store source: {data.get('source')!r}")
        if "path" not in data:
            raise ValueError("store: missing field 'path'")
        if "format" not in data:
            raise ValueError("store: missing field 'format'")
        return cls(
            file=_load_file_reference(data["path"]),
            format=TrustedDocumentsFileFormat.parse(data["format"]),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"source": self.SOURCE, "path": self.file.path, "format": self.format.value}


@dataclass(frozen=True)
class TrustedDocumentsPluginConfig:
    """The trusted documents store, the protocols exposed, and whether untrusted operations run."""

    store: FileStoreConfig
    protocols: list[ProtocolConfig] = field(default_factory=list)
    allow_untrusted: Optional[bool] = None

    @classmethod
    def from_dict(cls, data: Any) -> "TrustedDocumentsPluginConfig":
        what = "trusted_documents plugin configuration"
        data = _expect_mapping(data, what)
        if "store" not in data:
            raise ValueError(f"{what}: missing field 'store'")
        protocols = _require(data, "protocols", list, what)
        allow_untrusted = data.get("allow_untrusted")
        if allow_untrusted is not None and not isinstance(allow_untrusted, bool):
            raise ValueError(f"{what}: field 'allow_untrusted' must be a boolean")
        return cls(
            store=FileStoreConfig.from_dict(data["store"]),
            protocols=[parse_protocol(protocol) for protocol in protocols],
            allow_untrusted=allow_untrusted,
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "store": self.store.to_dict(),
            "protocols": [protocol.to_dict() for protocol in self.protocols],
        }
        if self.allow_untrusted is not None:
            result["allow_untrusted"] = self.allow_untrusted
        return result