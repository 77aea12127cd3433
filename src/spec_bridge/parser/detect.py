"""Load raw OpenAPI / Swagger text and detect which flavour it is."""

import json

import yaml
from loguru import logger

from spec_bridge.errors import SpecValidationError

MAX_SPEC_SIZE = 10 * 1024 * 1024  # 10 MiB


class _SpecLoader(yaml.SafeLoader):
    """Safe loader that keeps timestamps as plain strings."""


_SpecLoader.yaml_implicit_resolvers = {
    first: [(tag, regexp) for tag, regexp in resolvers if tag != "tag:yaml.org,2002:timestamp"]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}


def load_document(text: str) -> dict:
    """Parse spec text into a dict.

    JSON is tried first, then YAML with the safe loader (no arbitrary tags).
    Raises SpecValidationError for empty, oversized or unparseable input.
    """
    if not text or not text.strip():
        raise SpecValidationError("Empty specification provided")

    if len(text.encode("utf-8")) > MAX_SPEC_SIZE:
        raise SpecValidationError("Specification too large (max 10MB)")

    try:
        data = json.loads(text)
    except (json.JSONDecodeError, ValueError):
        logger.debug("Specification is not JSON, trying YAML")
        try:
            data = yaml.load(text, Loader=_SpecLoader)
        except yaml.YAMLError as e:
            raise SpecValidationError(
                "Invalid OpenAPI specification: Unable to parse as JSON or YAML"
            ) from e

    if not isinstance(data, dict):
        raise SpecValidationError("Invalid OpenAPI specification: Not a valid object")
    return data


def detect_flavour(doc: dict) -> str:
    """Return 'openapi3' or 'swagger2'.

    Raises SpecValidationError when neither version field is present.
    """
    if doc.get("openapi"):
        return "openapi3"
    if doc.get("swagger"):
        return "swagger2"
    raise SpecValidationError("Invalid OpenAPI specification: Missing openapi or swagger version")
