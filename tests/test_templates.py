import pytest
from pydantic import ValidationError

from spec_bridge.errors import SpecValidationError
from spec_bridge.templates import TEMPLATES, connection_from_template, get_template


class TestCatalog:
    def test_keys(self):
        assert list(TEMPLATES) == ["netsuite", "sap", "quickbooks", "xero", "custom"]

    def test_endpoint_counts(self):
        counts = {key: len(t.endpoints) for key, t in TEMPLATES.items()}
        assert counts == {"netsuite": 5, "sap": 2, "quickbooks": 3, "xero": 3, "custom": 0}

    def test_read_only(self):
        with pytest.raises(TypeError):
            TEMPLATES["other"] = TEMPLATES["custom"]
        with pytest.raises(ValidationError):
            TEMPLATES["xero"].name = "Changed"


class TestGetTemplate:
    @pytest.mark.parametrize("key", ["xero", "XERO", "Xero"])
    def test_case_insensitive(self, key):
        assert get_template(key).key == "xero"

    def test_by_display_name(self):
        assert get_template("custom api").key == "custom"

    def test_unknown(self):
        with pytest.raises(SpecValidationError, match="Unknown template"):
            get_template("oracle")


class TestConnectionFromTemplate:
    def test_seeded_connection(self):
        connection = connection_from_template("netsuite", "https://acct.suitetalk.api.netsuite.com")
        assert connection.name == "NetSuite"
        assert connection.erp_type == "NetSuite"
        assert connection.authentication_type == "OAuth2"
        assert connection.tags == ["netsuite"]
        assert [e.name for e in connection.endpoints][:2] == ["Get Customers", "Get Customer by ID"]

    def test_endpoints_are_copies(self):
        template_ids = {e.id for e in TEMPLATES["xero"].endpoints}
        first = connection_from_template("xero", name="Xero EU")
        second = connection_from_template("xero")
        assert first.name == "Xero EU"
        assert not template_ids & {e.id for e in first.endpoints}
        assert not {e.id for e in first.endpoints} & {e.id for e in second.endpoints}

        first.endpoints[0].path = "/changed"
        assert TEMPLATES["xero"].endpoints[0].path == "/api.xro/2.0/Contacts"
