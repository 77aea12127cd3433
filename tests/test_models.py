from spec_bridge.parser.base import (
    BasicAuthConfig,
    Connection,
    Endpoint,
    Parameter,
    RetryConfig,
    SchemaNode,
)


class TestParameter:
    def test_create_required_param(self):
        p = Parameter(name="id", location="path", required=True, type="integer")
        assert p.name == "id"
        assert p.required is True
        assert p.description is None
        assert p.enum is None

    def test_defaults_to_optional_query_string(self):
        p = Parameter(name="q")
        assert p.location == "query"
        assert p.type == "string"
        assert p.required is False


class TestSchemaNode:
    def test_recursive_tree(self):
        node = SchemaNode(
            type="object",
            required=["items"],
            properties={
                "items": SchemaNode(
                    type="array",
                    is_required=True,
                    items=SchemaNode(type="object", properties={"sku": SchemaNode()}),
                )
            },
        )
        assert node.properties["items"].items.properties["sku"].type == "string"

    def test_equal_trees_compare_equal(self):
        a = SchemaNode(type="object", properties={"name": SchemaNode(is_required=True)})
        b = SchemaNode(type="object", properties={"name": SchemaNode(is_required=True)})
        assert a == b

    def test_roundtrip_through_json(self):
        node = SchemaNode(type="array", items=SchemaNode(type="object", cyclic_ref="#/components/schemas/Node"))
        assert SchemaNode.model_validate_json(node.model_dump_json()) == node


class TestEndpoint:
    def test_create_minimal_endpoint(self):
        ep = Endpoint(name="listUsers", path="/api/users")
        assert ep.method == "GET"
        assert ep.parameters == []
        assert ep.request_body is None
        assert ep.headers == {}

    def test_ids_are_unique(self):
        assert Endpoint(name="a", path="/").id != Endpoint(name="a", path="/").id


class TestConnection:
    def test_defaults(self):
        c = Connection(name="Acme")
        assert c.timeout == 30000
        assert c.status == "inactive"
        assert c.authentication_type == "None"
        assert c.headers == {"Content-Type": "application/json", "Accept": "application/json"}
        assert c.retry_config == RetryConfig(max_retries=3, retry_delay=1000, retry_on=[500, 502, 503, 504])

    def test_timeout_below_floor_is_clamped(self):
        assert Connection(name="Acme", timeout=5).timeout == 1000

    def test_timeout_above_ceiling_is_clamped(self):
        assert Connection(name="Acme", timeout=999999).timeout == 120000

    def test_touch_refreshes_updated_at(self):
        c = Connection(name="Acme", updated_at="2000-01-01T00:00:00+00:00")
        c.touch()
        assert c.updated_at > "2000-01-01T00:00:00+00:00"

    def test_auth_config_roundtrip(self):
        c = Connection(name="Acme", authentication_type="Basic", auth_config=BasicAuthConfig(username="u", password="p"))
        restored = Connection.model_validate(c.model_dump(mode="json"))
        assert isinstance(restored.auth_config, BasicAuthConfig)
        assert restored == c
