"""OpenAPI / Swagger importer.

Parses OpenAPI 3.x and Swagger 2.0 documents into a Connection whose
endpoints carry fully inlined SchemaNode trees.
"""

from pathlib import Path
from typing import Any

from loguru import logger
from pydantic import ValidationError

from spec_bridge.errors import SpecValidationError
from spec_bridge.parser.base import Connection, Endpoint, Parameter, SchemaNode
from spec_bridge.parser.detect import detect_flavour, load_document
from spec_bridge.security import is_valid_url

MAX_PATHS = 500

SUPPORTED_METHODS = ("get", "post", "put", "patch", "delete")
PARAM_LOCATIONS = ("path", "query", "header")
SUCCESS_RESPONSES = ("200", "201", "default")
JSON_CONTENT = "application/json"

TYPE_MAP = {
    "string": "string",
    "number": "number",
    "integer": "integer",
    "boolean": "boolean",
    "array": "array",
    "object": "object",
}


def import_from_file(file_path: Path) -> Connection:
    """Read an OpenAPI/Swagger file and import it."""
    return import_from_spec(file_path.read_text(encoding="utf-8"))


def import_from_spec(text: str) -> Connection:
    """Parse OpenAPI/Swagger text into a Connection.

    Either every endpoint is imported or a SpecValidationError is raised;
    nothing is returned half-built.
    """
    logger.info("Importing OpenAPI specification")
    doc = load_document(text)
    flavour = detect_flavour(doc)

    info = doc.get("info")
    if not isinstance(info, dict):
        raise SpecValidationError("Invalid OpenAPI specification: Missing info section")

    paths = doc.get("paths")
    if not isinstance(paths, dict):
        raise SpecValidationError("Invalid OpenAPI specification: Missing paths section")

    if len(paths) > MAX_PATHS:
        raise SpecValidationError(f"Too many endpoints ({len(paths)}). Maximum allowed: {MAX_PATHS}")

    converter = _SpecConverter(doc, flavour)
    base_url = converter.base_url()

    try:
        endpoints = converter.endpoints(paths)
        connection = Connection(
            name=_text(info.get("title")) or "Imported API",
            description=_text(info.get("description")),
            base_url=base_url,
            authentication_type=converter.authentication_type(),
            endpoints=endpoints,
            tags=[str(t["name"]) for t in _as_list(doc.get("tags")) if isinstance(t, dict) and "name" in t],
        )
    except ValidationError as e:
        raise SpecValidationError(f"Invalid OpenAPI specification: {e}") from e

    logger.info(
        "Successfully imported {} ({} endpoints, base url {!r})",
        connection.name,
        len(endpoints),
        base_url,
    )
    return connection


def _text(value: Any) -> str | None:
    if value is None or isinstance(value, (dict, list)):
        return None
    return str(value)


def _as_list(value: Any) -> list:
    """Malformed documents may put a scalar or mapping where a list belongs."""
    return value if isinstance(value, list) else []


def _type_name(value: Any) -> str:
    return TYPE_MAP.get(value, "string") if isinstance(value, str) else "string"


class _SpecConverter:
    """Walks one parsed document; holds it for local $ref lookups."""

    def __init__(self, doc: dict, flavour: str):
        self.doc = doc
        self.flavour = flavour

    # -- document level -------------------------------------------------------

    def base_url(self) -> str:
        if self.flavour == "swagger2":
            host = self.doc.get("host")
            if not host:
                return ""
            schemes = self.doc.get("schemes")
            if not isinstance(schemes, list) or not schemes:
                schemes = ["https"]
            base_url = f"{schemes[0]}://{host}{self.doc.get('basePath') or ''}"
        else:
            servers = self.doc.get("servers")
            if not isinstance(servers, list) or not servers or not isinstance(servers[0], dict):
                return ""
            base_url = str(servers[0].get("url") or "")

        if base_url and not base_url.startswith("{") and not is_valid_url(base_url):
            logger.warning("Invalid base URL in spec, using empty")
            return ""
        return base_url

    def authentication_type(self) -> str:
        """First recognised security scheme wins; no merging."""
        if self.flavour == "swagger2":
            schemes = self.doc.get("securityDefinitions")
        else:
            components = self.doc.get("components")
            schemes = components.get("securitySchemes") if isinstance(components, dict) else None
        if not isinstance(schemes, dict):
            return "None"

        for raw in schemes.values():
            scheme = self._deref(raw)
            if not isinstance(scheme, dict):
                continue
            kind = scheme.get("type")
            http_scheme = str(scheme.get("scheme", "")).lower()
            if kind == "oauth2":
                return "OAuth2"
            if (kind == "http" and http_scheme == "basic") or kind == "basic":
                return "Basic"
            if kind == "apiKey":
                return "API_Key"
            if kind == "http" and http_scheme == "bearer":
                return "JWT"
        return "None"

    # -- endpoints ------------------------------------------------------------

    def endpoints(self, paths: dict) -> list[Endpoint]:
        endpoints = []
        for path, path_item in paths.items():
            if not isinstance(path_item, dict):
                continue
            shared_params = _as_list(path_item.get("parameters"))
            for method, operation in path_item.items():
                if str(method).lower() not in SUPPORTED_METHODS or not isinstance(operation, dict):
                    continue
                endpoints.append(self._endpoint(str(path), str(method).upper(), operation, shared_params))
        return endpoints

    def _endpoint(self, path: str, method: str, operation: dict, shared_params: list) -> Endpoint:
        raw_params = self._merge_parameters(shared_params, _as_list(operation.get("parameters")))

        if self.flavour == "swagger2":
            request_body = self._swagger_body(raw_params)
        else:
            request_body = self._request_body(operation.get("requestBody"))

        return Endpoint(
            name=_text(operation.get("operationId")) or f"{method} {path}",
            description=_text(operation.get("summary")) or _text(operation.get("description")),
            path=path,
            method=method,
            parameters=self._parameters(raw_params),
            request_body=request_body,
            response_schema=self._response_schema(operation.get("responses")),
            tags=[str(t) for t in _as_list(operation.get("tags")) if isinstance(t, (str, int))],
        )

    def _merge_parameters(self, shared: list, own: list) -> list[dict]:
        """Path-level parameters, overridden by operation-level ones with the same (name, in)."""
        merged: dict[tuple, dict] = {}
        for raw in list(shared) + list(own):
            param = self._deref(raw)
            if not isinstance(param, dict) or "name" not in param:
                continue
            merged[(str(param["name"]), str(param.get("in", "query")))] = param
        return list(merged.values())

    def _parameters(self, raw_params: list[dict]) -> list[Parameter]:
        result = []
        for p in raw_params:
            location = p.get("in", "query")
            if location not in PARAM_LOCATIONS:
                logger.debug("Skipping parameter {} located in {}", p["name"], location)
                continue

            schema = self._deref(p.get("schema"))
            if not isinstance(schema, dict):
                schema = {}
            if self.flavour == "swagger2" and not schema:
                schema = p
            enum = schema.get("enum")

            result.append(
                Parameter(
                    name=str(p["name"]),
                    location=location,
                    required=bool(p.get("required", False)),
                    type=_type_name(schema.get("type")),
                    description=_text(p.get("description")),
                    default_value=schema.get("default"),
                    enum=enum if isinstance(enum, list) else None,
                )
            )
        return result

    def _request_body(self, body: Any) -> SchemaNode | None:
        body = self._deref(body)
        if not isinstance(body, dict):
            return None
        content = body.get("content")
        if not isinstance(content, dict) or not isinstance(content.get(JSON_CONTENT), dict):
            return None
        return self.schema(content[JSON_CONTENT].get("schema"))

    def _swagger_body(self, raw_params: list[dict]) -> SchemaNode | None:
        for p in raw_params:
            if p.get("in") == "body":
                return self.schema(p.get("schema"))
        return None

    def _response_schema(self, responses: Any) -> SchemaNode | None:
        if not isinstance(responses, dict):
            return None
        # YAML may load unquoted status codes as ints
        by_code = {str(code): resp for code, resp in responses.items()}

        for code in SUCCESS_RESPONSES:
            response = self._deref(by_code.get(code))
            if not isinstance(response, dict):
                continue
            if self.flavour == "swagger2":
                if "schema" in response:
                    return self.schema(response["schema"])
                continue
            content = response.get("content")
            if isinstance(content, dict) and isinstance(content.get(JSON_CONTENT), dict):
                return self.schema(content[JSON_CONTENT].get("schema"))
        return None

    # -- schemas --------------------------------------------------------------

    def schema(
        self,
        raw: Any,
        trail: tuple[str, ...] = (),
        nested: bool = False,
        is_required: bool | None = None,
    ) -> SchemaNode | None:
        """Convert an OpenAPI schema object, inlining local references.

        ``trail`` holds the references being expanded on the current path;
        meeting one of them again yields a ``cyclic_ref`` placeholder.
        Unresolvable references come back as None.
        """
        if not isinstance(raw, dict):
            return None

        ref = raw.get("$ref")
        if ref is not None:
            if not isinstance(ref, str):
                logger.debug("Ignoring malformed reference {!r}", ref)
                return None
            if ref in trail:
                return SchemaNode(type="object", cyclic_ref=ref, is_required=is_required)
            target = self._lookup(ref)
            if not isinstance(target, dict):
                logger.debug("Unresolvable reference {}", ref)
                return None
            return self.schema(target, trail + (ref,), nested, is_required)

        raw, trail = self._merge_all_of(raw, trail)
        data_type, nullable = self._data_type(raw, nested)
        required = raw.get("required")
        required = [str(name) for name in required] if isinstance(required, list) else None
        enum = raw.get("enum")

        node = SchemaNode(
            type=data_type,
            description=_text(raw.get("description")),
            example=raw.get("example"),
            format=_text(raw.get("format")),
            enum=enum if isinstance(enum, list) else None,
            nullable=True if raw.get("nullable") is True or nullable else None,
            max_length=raw.get("maxLength") if isinstance(raw.get("maxLength"), int) else None,
            min_length=raw.get("minLength") if isinstance(raw.get("minLength"), int) else None,
            pattern=_text(raw.get("pattern")),
            required=required,
            is_required=is_required,
        )

        properties = raw.get("properties")
        if data_type == "object" and isinstance(properties, dict):
            node.properties = {}
            for name, prop in properties.items():
                child = self.schema(prop, trail, nested=True, is_required=str(name) in (required or []))
                if child is not None:
                    node.properties[str(name)] = child

        if data_type == "array" and "items" in raw:
            node.items = self.schema(raw["items"], trail, nested=True)

        return node

    def _merge_all_of(self, raw: dict, trail: tuple[str, ...]) -> tuple[dict, tuple[str, ...]]:
        members = raw.get("allOf")
        if not isinstance(members, list):
            return raw, trail

        merged = {k: v for k, v in raw.items() if k != "allOf"}
        properties = dict(merged["properties"]) if isinstance(merged.get("properties"), dict) else {}
        required = list(_as_list(merged.get("required")))
        for member in members:
            if not isinstance(member, dict):
                continue
            ref = member.get("$ref")
            if ref is not None:
                if not isinstance(ref, str) or ref in trail:
                    continue
                trail = trail + (ref,)
                member = self._lookup(ref)
                if not isinstance(member, dict):
                    continue
            member, trail = self._merge_all_of(member, trail)
            if isinstance(member.get("properties"), dict):
                properties.update(member["properties"])
            if isinstance(member.get("required"), list):
                required.extend(name for name in member["required"] if name not in required)
            for key, value in member.items():
                if key not in ("properties", "required"):
                    merged.setdefault(key, value)

        if properties:
            merged["properties"] = properties
            merged.setdefault("type", "object")
        if required:
            merged["required"] = required
        return merged, trail

    @staticmethod
    def _data_type(raw: dict, nested: bool) -> tuple[str, bool]:
        declared = raw.get("type")
        nullable = False
        if isinstance(declared, list):
            non_null = [t for t in declared if t != "null"]
            nullable = len(non_null) < len(declared)
            declared = non_null[0] if non_null else None
        if not isinstance(declared, str):
            declared = None

        if declared is None:
            if "properties" in raw:
                declared = "object"
            elif "items" in raw:
                declared = "array"
            else:
                declared = "string" if nested else "object"
        return TYPE_MAP.get(declared, "string"), nullable

    # -- references -----------------------------------------------------------

    def _lookup(self, ref: Any) -> Any:
        """Resolve a local JSON pointer such as ``#/components/schemas/Pet``."""
        if not isinstance(ref, str) or not ref.startswith("#/"):
            return None
        node: Any = self.doc
        for part in ref[2:].split("/"):
            part = part.replace("~1", "/").replace("~0", "~")
            if not isinstance(node, dict) or part not in node:
                return None
            node = node[part]
        return node

    def _deref(self, obj: Any) -> Any:
        """Follow $ref chains on non-schema objects (parameters, bodies, responses)."""
        seen: set[str] = set()
        while isinstance(obj, dict) and "$ref" in obj:
            ref = obj["$ref"]
            if not isinstance(ref, str) or ref in seen:
                return None
            seen.add(ref)
            obj = self._lookup(ref)
        return obj
