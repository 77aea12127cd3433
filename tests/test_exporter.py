import json
from pathlib import Path

from spec_bridge.exporter.openapi import build_openapi_document, generate_openapi_spec, schema_to_openapi
from spec_bridge.parser.base import Connection, Endpoint, Parameter, SchemaNode
from spec_bridge.parser.openapi import import_from_file, import_from_spec

FIXTURES = Path(__file__).parent / "fixtures"


class TestGenerateOpenApiSpec:
    def test_petstore_document(self):
        doc = json.loads(generate_openapi_spec(import_from_file(FIXTURES / "petstore.yaml")))
        assert doc["openapi"] == "3.0.3"
        assert doc["info"]["title"] == "Swagger Petstore"
        assert doc["servers"] == [{"url": "https://petstore.example.com/v1", "description": "API Server"}]
        assert set(doc["paths"]) == {"/pets", "/pets/{petId}"}
        assert set(doc["paths"]["/pets"]) == {"get", "post"}
        assert doc["components"]["securitySchemes"] == {
            "bearerAuth": {"type": "http", "scheme": "bearer", "bearerFormat": "JWT"}
        }

    def test_required_array_is_rebuilt(self):
        doc = build_openapi_document(import_from_file(FIXTURES / "petstore.yaml"))
        pet = doc["paths"]["/pets/{petId}"]["get"]["responses"]["200"]["content"]["application/json"]["schema"]
        assert pet["required"] == ["id", "name"]
        assert pet["properties"]["birthday"] == {"type": "string", "format": "date"}
        assert "required" not in pet["properties"]["name"]

    def test_pretty_printed(self):
        text = generate_openapi_spec(Connection(name="A"))
        assert text.startswith("{\n  ")

    def test_no_auth_no_servers(self):
        doc = build_openapi_document(Connection(name="A"))
        assert "servers" not in doc
        assert doc["components"] == {"schemas": {}, "securitySchemes": {}}

    def test_api_key_scheme(self):
        doc = build_openapi_document(Connection(name="A", authentication_type="API_Key"))
        assert doc["components"]["securitySchemes"]["apiKey"] == {"type": "apiKey", "in": "header", "name": "X-API-Key"}

    def test_operation_fields(self):
        endpoint = Endpoint(
            name="Get Customers",
            path="/customers",
            parameters=[Parameter(name="limit", type="integer", default_value=10)],
        )
        doc = build_openapi_document(Connection(name="A", endpoints=[endpoint]))
        operation = doc["paths"]["/customers"]["get"]
        assert operation["operationId"] == "Get_Customers"
        assert operation["summary"] == "Get Customers"
        assert operation["parameters"] == [
            {"name": "limit", "in": "query", "required": False, "schema": {"type": "integer", "default": 10}}
        ]
        assert operation["responses"]["200"] == {"description": "Successful response"}

    def test_roundtrip_keeps_endpoints(self):
        original = import_from_file(FIXTURES / "petstore.yaml")
        again = import_from_spec(generate_openapi_spec(original))
        assert [(e.name, e.method, e.path) for e in again.endpoints] == [
            (e.name, e.method, e.path) for e in original.endpoints
        ]
        assert again.authentication_type == original.authentication_type
        assert again.endpoints[1].request_body == original.endpoints[1].request_body


class TestSchemaToOpenApi:
    def test_absent_fields_are_omitted(self):
        assert schema_to_openapi(SchemaNode(type="integer")) == {"type": "integer"}

    def test_datetime(self):
        assert schema_to_openapi(SchemaNode(type="datetime")) == {"type": "string", "format": "date-time"}

    def test_cyclic_placeholder(self):
        out = schema_to_openapi(SchemaNode(type="object", cyclic_ref="#/components/schemas/Node"))
        assert out == {"type": "object", "description": "Recursive reference to #/components/schemas/Node"}

    def test_is_required_flags_become_parent_required(self):
        node = SchemaNode(type="object", properties={"a": SchemaNode(is_required=True), "b": SchemaNode()})
        assert schema_to_openapi(node)["required"] == ["a"]
