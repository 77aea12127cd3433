"""Declarative metadata: named credential and external service registration."""

import re
import xml.etree.ElementTree as ET

from loguru import logger

from spec_bridge.exporter.openapi import generate_openapi_spec
from spec_bridge.generator.apex import API_VERSION, credential_name
from spec_bridge.generator.base import GeneratedFile
from spec_bridge.parser.base import Connection, JWTConfig

METADATA_NS = "http://soap.sforce.com/2006/04/metadata"
XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>\n'

NAMED_CREDENTIAL_PATH = "force-app/main/default/namedCredentials"
EXTERNAL_SERVICE_PATH = "force-app/main/default/externalServiceRegistrations"
MANIFEST_PATH = "manifest"

CREDENTIAL_PROTOCOLS = {
    "None": "NoAuthentication",
    "Basic": "Password",
    "OAuth2": "OAuth",
    "JWT": "Jwt",
    "Certificate": "Certificate",
    "API_Key": "NoAuthentication",
}


def credential_protocol(connection: Connection) -> str:
    """Protocol of the named credential; a JWT config with an audience means token exchange."""
    if connection.authentication_type == "JWT":
        config = connection.auth_config
        if isinstance(config, JWTConfig) and config.audience:
            return "JwtExchange"
    return CREDENTIAL_PROTOCOLS[connection.authentication_type]


def generate_named_credential(connection: Connection, path: str = NAMED_CREDENTIAL_PATH) -> GeneratedFile:
    name = credential_name(connection)
    protocol = credential_protocol(connection)

    root = ET.Element("NamedCredential", xmlns=METADATA_NS)
    # API keys travel as a header merge field, so the header must allow it
    _child(root, "allowMergeFieldsInBody", "false")
    _child(root, "allowMergeFieldsInHeader", _bool(connection.authentication_type == "API_Key"))
    if protocol == "OAuth":
        _child(root, "authProvider", f"{name}AuthProvider")
    if protocol == "Certificate":
        certificate = getattr(connection.auth_config, "certificate_name", None) or name
        _child(root, "certificate", certificate)
    _child(root, "endpoint", connection.base_url)
    _child(root, "generateAuthorizationHeader", _bool(protocol != "NoAuthentication"))
    _child(root, "label", connection.name)
    if protocol == "JwtExchange":
        _child(root, "jwtAudience", connection.auth_config.audience)
    _child(root, "principalType", "NamedUser")
    _child(root, "protocol", protocol)

    logger.info("Generated named credential {} ({})", name, protocol)
    return GeneratedFile(
        file_name=f"{name}.namedCredential-meta.xml",
        content=_render(root),
        type="credential-descriptor",
        path=path,
    )


def generate_external_service(
    connection: Connection,
    path: str = EXTERNAL_SERVICE_PATH,
    api_version: str = API_VERSION,
) -> list[GeneratedFile]:
    """Registration embedding the exported OpenAPI document, plus a package.xml for deployment."""
    name = credential_name(connection)

    root = ET.Element("ExternalServiceRegistration", xmlns=METADATA_NS)
    _child(root, "description", connection.description or f"External service for {connection.name}")
    _child(root, "label", connection.name)
    _child(root, "namedCredentialReference", name)
    for endpoint in connection.endpoints:
        operation = ET.SubElement(root, "operations")
        _child(operation, "active", "true")
        _child(operation, "name", _operation_name(endpoint.name))
    _child(root, "registrationProviderType", "Custom")
    _child(root, "schema", generate_openapi_spec(connection))
    _child(root, "schemaType", "OpenApi3")
    _child(root, "schemaUploadFileExtension", "json")
    _child(root, "schemaUploadFileName", f"{name.lower()}_openapi")
    _child(root, "status", "Complete")
    _child(root, "systemVersion", "3")

    registration = GeneratedFile(
        file_name=f"{name}.externalServiceRegistration-meta.xml",
        content=_render(root),
        type="service-descriptor",
        path=path,
    )

    package = ET.Element("Package", xmlns=METADATA_NS)
    for member, type_name in ((name, "ExternalServiceRegistration"), (name, "NamedCredential")):
        types = ET.SubElement(package, "types")
        _child(types, "members", member)
        _child(types, "name", type_name)
    _child(package, "version", api_version)
    manifest = GeneratedFile(
        file_name="package.xml",
        content=_render(package),
        type="service-descriptor",
        path=MANIFEST_PATH,
    )

    logger.info("Generated external service registration {} with {} operations", name, len(connection.endpoints))
    return [registration, manifest]


def _operation_name(endpoint_name: str) -> str:
    # matches the operationId written by the exporter
    return re.sub(r"\s+", "_", endpoint_name)


def _child(parent: ET.Element, tag: str, text: str) -> ET.Element:
    element = ET.SubElement(parent, tag)
    element.text = text
    return element


def _bool(value: bool) -> str:
    return "true" if value else "false"


def _render(root: ET.Element) -> str:
    ET.indent(root, space="    ")
    return XML_DECLARATION + ET.tostring(root, encoding="unicode") + "\n"
