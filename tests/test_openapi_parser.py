import json
from pathlib import Path

import pytest

from spec_bridge.errors import SpecValidationError
from spec_bridge.parser.detect import MAX_SPEC_SIZE, detect_flavour, load_document
from spec_bridge.parser.openapi import import_from_file, import_from_spec

FIXTURES = Path(__file__).parent / "fixtures"


def _spec(paths=None, **extra) -> str:
    doc = {"openapi": "3.0.0", "info": {"title": "T", "version": "1"}, "paths": paths or {}}
    doc.update(extra)
    return json.dumps(doc)


class TestLoadDocument:
    def test_json_first(self):
        assert load_document('{"openapi": "3.0.0"}') == {"openapi": "3.0.0"}

    def test_yaml_fallback(self):
        assert load_document("openapi: 3.0.0\ninfo:\n  title: T\n")["info"]["title"] == "T"

    def test_yaml_dates_stay_strings(self):
        doc = load_document("openapi: 3.0.0\ninfo:\n  version: 2024-01-01\n")
        assert doc["info"]["version"] == "2024-01-01"

    def test_empty_input(self):
        with pytest.raises(SpecValidationError, match="Empty"):
            load_document("   \n")

    def test_oversized_input(self):
        with pytest.raises(SpecValidationError, match="too large"):
            load_document("a" * (MAX_SPEC_SIZE + 1))

    def test_unsafe_yaml_tags_rejected(self):
        with pytest.raises(SpecValidationError, match="Unable to parse"):
            load_document("!!python/object/apply:os.system ['echo hi']")

    def test_non_object_rejected(self):
        with pytest.raises(SpecValidationError, match="Not a valid object"):
            load_document("[1, 2, 3]")

    def test_detect_flavour(self):
        assert detect_flavour({"openapi": "3.1.0"}) == "openapi3"
        assert detect_flavour({"swagger": "2.0"}) == "swagger2"
        with pytest.raises(SpecValidationError, match="Missing openapi or swagger version"):
            detect_flavour({"info": {}})


class TestImportPetstore:
    @pytest.fixture
    def connection(self):
        return import_from_file(FIXTURES / "petstore.yaml")

    def test_connection_fields(self, connection):
        assert connection.name == "Swagger Petstore"
        assert connection.description == "A sample API that uses a petstore as an example"
        assert connection.base_url == "https://petstore.example.com/v1"
        assert connection.authentication_type == "JWT"
        assert connection.tags == ["pets"]
        assert connection.status == "inactive"
        assert connection.timeout == 30000

    def test_endpoint_count(self, connection):
        assert [(e.method, e.path) for e in connection.endpoints] == [
            ("GET", "/pets"),
            ("POST", "/pets"),
            ("GET", "/pets/{petId}"),
        ]

    def test_list_pets(self, connection):
        list_pets = connection.endpoints[0]
        assert list_pets.name == "listPets"
        assert list_pets.description == "List all pets"
        assert list_pets.tags == ["pets"]
        assert len(list_pets.parameters) == 1
        limit = list_pets.parameters[0]
        assert (limit.name, limit.location, limit.type, limit.required) == ("limit", "query", "integer", False)

    def test_response_refs_are_inlined(self, connection):
        schema = connection.endpoints[0].response_schema
        assert schema.type == "array"
        pet = schema.items
        assert pet.type == "object"
        assert pet.required == ["id", "name"]
        assert pet.properties["id"].format == "int64"
        assert pet.properties["id"].is_required is True
        assert pet.properties["tag"].is_required is False
        assert pet.properties["birthday"].format == "date"

    def test_request_body_and_201_response(self, connection):
        create = connection.endpoints[1]
        assert create.request_body.properties["name"].max_length == 64
        assert create.response_schema is not None
        assert set(create.response_schema.properties) == {"id", "name", "tag", "birthday"}

    def test_path_param(self, connection):
        pet_id = connection.endpoints[2].parameters[0]
        assert pet_id.location == "path"
        assert pet_id.required is True
        assert pet_id.description == "The id of the pet to retrieve"


class TestImportSwagger2:
    def test_swagger_document(self):
        connection = import_from_file(FIXTURES / "swagger2.json")
        assert connection.base_url == "https://orders.example.com/api"
        assert connection.authentication_type == "Basic"

        list_orders, create_order = connection.endpoints
        assert list_orders.parameters[0].enum == ["open", "closed"]
        assert list_orders.response_schema.items.properties["placedAt"].format == "date-time"
        assert create_order.request_body.properties["id"].is_required is True
        assert create_order.parameters == []


class TestImportEdgeCases:
    def test_recursive_schema_gets_placeholder(self):
        connection = import_from_file(FIXTURES / "recursive.yaml")
        node = connection.endpoints[0].response_schema
        assert node.properties["parent"].cyclic_ref == "#/components/schemas/Node"
        assert node.properties["parent"].properties is None
        assert node.properties["children"].items.cyclic_ref == "#/components/schemas/Node"

    def test_unresolvable_ref_property_is_omitted(self):
        node = import_from_file(FIXTURES / "recursive.yaml").endpoints[0].response_schema
        assert "owner" not in node.properties

    def test_path_level_params_merged_and_cookie_skipped(self):
        endpoint = import_from_file(FIXTURES / "recursive.yaml").endpoints[0]
        assert [p.name for p in endpoint.parameters] == ["id"]

    def test_ref_imports_like_inlined_schema(self):
        widget = {"type": "object", "required": ["sku"], "properties": {"sku": {"type": "string"}, "qty": {"type": "integer"}}}

        def doc(schema):
            return _spec(
                {"/w": {"post": {"requestBody": {"content": {"application/json": {"schema": schema}}}, "responses": {}}}},
                components={"schemas": {"Widget": widget}},
            )

        by_ref = import_from_spec(doc({"$ref": "#/components/schemas/Widget"}))
        inline = import_from_spec(doc(widget))
        assert by_ref.endpoints[0].request_body == inline.endpoints[0].request_body

    def test_auth_precedence_follows_document_order(self):
        oauth = {"type": "oauth2", "flows": {}}
        api_key = {"type": "apiKey", "in": "header", "name": "X-Key"}
        first_oauth = _spec(components={"securitySchemes": {"o": oauth, "k": api_key}})
        first_key = _spec(components={"securitySchemes": {"k": api_key, "o": oauth}})
        assert import_from_spec(first_oauth).authentication_type == "OAuth2"
        assert import_from_spec(first_key).authentication_type == "API_Key"

    def test_unrecognised_scheme_is_none(self):
        spec = _spec(components={"securitySchemes": {"x": {"type": "openIdConnect"}}})
        assert import_from_spec(spec).authentication_type == "None"

    def test_endpoint_count_matches_supported_verbs(self):
        paths = {
            "/a": {"get": {}, "POST": {}, "options": {}, "head": {}},
            "/b": {"put": {}, "patch": {}, "delete": {}, "parameters": []},
        }
        connection = import_from_spec(_spec(paths))
        assert len(connection.endpoints) == 5
        assert connection.endpoints[1].name == "POST /a"

    def test_operation_without_anything_is_valid(self):
        endpoint = import_from_spec(_spec({"/ping": {"get": {"responses": {"204": {"description": "none"}}}}})).endpoints[0]
        assert endpoint.parameters == []
        assert endpoint.request_body is None
        assert endpoint.response_schema is None

    def test_invalid_base_url_becomes_empty(self):
        assert import_from_spec(_spec(servers=[{"url": "not a url"}])).base_url == ""

    def test_templated_base_url_is_kept(self):
        assert import_from_spec(_spec(servers=[{"url": "{scheme}://api.example.com"}])).base_url == "{scheme}://api.example.com"

    def test_unknown_type_defaults_to_string(self):
        schema = {"type": "object", "properties": {"blob": {"type": "file"}, "maybe": {"type": ["integer", "null"]}}}
        paths = {"/f": {"post": {"requestBody": {"content": {"application/json": {"schema": schema}}}}}}
        body = import_from_spec(_spec(paths)).endpoints[0].request_body
        assert body.properties["blob"].type == "string"
        assert body.properties["maybe"].type == "integer"
        assert body.properties["maybe"].nullable is True

    def test_all_of_is_merged(self):
        schemas = {
            "Base": {"type": "object", "required": ["id"], "properties": {"id": {"type": "string"}}},
            "Dog": {"allOf": [{"$ref": "#/components/schemas/Base"}, {"properties": {"bark": {"type": "boolean"}}}]},
        }
        paths = {"/dog": {"get": {"responses": {"200": {"content": {"application/json": {"schema": {"$ref": "#/components/schemas/Dog"}}}}}}}}
        dog = import_from_spec(_spec(paths, components={"schemas": schemas})).endpoints[0].response_schema
        assert dog.type == "object"
        assert set(dog.properties) == {"id", "bark"}
        assert dog.properties["id"].is_required is True


class TestMalformedDocuments:
    """Structurally wrong pieces are treated as absent instead of crashing the import."""

    @staticmethod
    def _endpoint(operation, **extra):
        return import_from_spec(_spec({"/x": {"get": operation}}, **extra)).endpoints[0]

    @pytest.mark.parametrize(
        "operation",
        [
            {"parameters": [{"$ref": {"x": 1}}]},
            {"parameters": {"name": "q", "in": "query"}},
            {"parameters": [{"name": "q", "in": {"query": 1}}]},
            {"responses": {"200": {"$ref": ["x"]}}},
            {"responses": ["200"]},
            {"tags": "pets"},
            {"tags": {"name": "pets"}},
            {"requestBody": {"content": {"application/json": {"schema": {"$ref": 5}}}}},
        ],
    )
    def test_operation_still_imports(self, operation):
        endpoint = self._endpoint(operation)
        assert endpoint.name == "GET /x"
        assert endpoint.parameters == []
        assert endpoint.tags == []
        assert endpoint.response_schema is None

    def test_non_object_parameter_schema(self):
        endpoint = self._endpoint({"parameters": [{"name": "q", "in": "query", "schema": "string"}]})
        assert [(p.name, p.type) for p in endpoint.parameters] == [("q", "string")]

    def test_non_string_schema_type(self):
        schema = {"type": "object", "properties": {"a": {"type": {"x": 1}}, "b": {"type": 7}}}
        operation = {"responses": {"200": {"content": {"application/json": {"schema": schema}}}}}
        body = self._endpoint(operation).response_schema
        assert body.properties["a"].type == "string"
        assert body.properties["b"].type == "string"

    def test_malformed_all_of_members(self):
        schema = {"allOf": [{"$ref": 3}, {"properties": {"a": {"type": "string"}}}], "properties": [1], "required": 5}
        operation = {"responses": {"200": {"content": {"application/json": {"schema": schema}}}}}
        body = self._endpoint(operation).response_schema
        assert body.type == "object"
        assert set(body.properties) == {"a"}
        assert body.required is None

    def test_path_level_parameters_not_a_list(self):
        connection = import_from_spec(_spec({"/x": {"parameters": 5, "get": {}}}))
        assert connection.endpoints[0].parameters == []

    def test_document_level_oddities(self):
        connection = import_from_spec(_spec(tags={"name": "pets"}, components=["securitySchemes"]))
        assert connection.tags == []
        assert connection.authentication_type == "None"

    def test_swagger_schemes_not_a_list(self):
        doc = {"swagger": "2.0", "info": {"title": "T"}, "host": "api.example.com", "schemes": {"a": 1}, "paths": {}}
        assert import_from_spec(json.dumps(doc)).base_url == "https://api.example.com"


class TestImportFailures:
    def test_missing_info(self):
        with pytest.raises(SpecValidationError, match="Missing info"):
            import_from_spec(json.dumps({"openapi": "3.0.0", "paths": {}}))

    def test_missing_paths(self):
        with pytest.raises(SpecValidationError, match="Missing paths"):
            import_from_spec(json.dumps({"openapi": "3.0.0", "info": {"title": "T"}}))

    def test_missing_version(self):
        with pytest.raises(SpecValidationError, match="Missing openapi or swagger version"):
            import_from_spec(json.dumps({"info": {"title": "T"}, "paths": {}}))

    def test_too_many_paths(self):
        paths = {f"/p{i}": {"get": {}} for i in range(501)}
        with pytest.raises(SpecValidationError, match="Too many endpoints"):
            import_from_spec(_spec(paths))

    def test_500_paths_is_allowed(self):
        paths = {f"/p{i}": {"get": {}} for i in range(500)}
        assert len(import_from_spec(_spec(paths)).endpoints) == 500

    def test_unparseable(self):
        with pytest.raises(SpecValidationError, match="Unable to parse"):
            import_from_spec("{not json: [")
