import json
import subprocess
from unittest.mock import MagicMock, patch

import pytest

from spec_bridge.errors import ExternalCallError
from spec_bridge.platform import CachedMetadataSource, PlatformField, SfCliMetadataSource

DESCRIBE = {
    "status": 0,
    "result": {
        "fields": [
            {"name": "Name", "label": "Account Name", "type": "string", "length": 255, "nillable": False},
            {
                "name": "OwnerId",
                "type": "reference",
                "nillable": False,
                "defaultedOnCreate": True,
                "referenceTo": ["User"],
            },
            {"name": "Site", "nillable": True, "externalId": True},
        ]
    },
}


def _completed(payload, returncode=0, stderr=""):
    stdout = payload if isinstance(payload, str) else json.dumps(payload)
    return subprocess.CompletedProcess(args=["sf"], returncode=returncode, stdout=stdout, stderr=stderr)


class TestSfCliMetadataSource:
    @patch("spec_bridge.platform.subprocess.run")
    def test_describe_object(self, mock_run):
        mock_run.return_value = _completed(DESCRIBE)
        fields = SfCliMetadataSource(timeout=30).describe_object("Account")

        mock_run.assert_called_once_with(
            ["sf", "sobject", "describe", "--sobject", "Account", "--json"],
            capture_output=True,
            text=True,
            timeout=30,
        )
        name, owner, site = fields
        assert (name.label, name.length, name.required) == ("Account Name", 255, True)
        assert owner.required is False
        assert owner.reference_to == ["User"]
        assert site.label == "Site"
        assert site.external_id is True

    @patch("spec_bridge.platform.subprocess.run")
    def test_query(self, mock_run):
        mock_run.return_value = _completed({"status": 0, "result": {"records": [{"Id": "001"}]}})
        assert SfCliMetadataSource().query("SELECT Id FROM Account") == [{"Id": "001"}]
        assert mock_run.call_args.args[0][:4] == ["sf", "data", "query", "--query"]

    @patch("spec_bridge.platform.subprocess.run")
    def test_list_objects(self, mock_run):
        mock_run.return_value = _completed({"status": 0, "result": ["Account", "Contact"]})
        assert SfCliMetadataSource().list_objects() == ["Account", "Contact"]

    @patch("spec_bridge.platform.subprocess.run")
    def test_timeout(self, mock_run):
        mock_run.side_effect = subprocess.TimeoutExpired(cmd="sf", timeout=5)
        with pytest.raises(ExternalCallError, match="timed out after 5s"):
            SfCliMetadataSource(timeout=5).describe_object("Account")

    @patch("spec_bridge.platform.subprocess.run")
    def test_missing_executable(self, mock_run):
        mock_run.side_effect = FileNotFoundError("sf")
        with pytest.raises(ExternalCallError, match="Could not run sf"):
            SfCliMetadataSource().describe_object("Account")

    @patch("spec_bridge.platform.subprocess.run")
    def test_cli_error_message(self, mock_run):
        mock_run.return_value = _completed({"status": 1, "message": "The requested resource does not exist"}, 1)
        with pytest.raises(ExternalCallError, match="does not exist"):
            SfCliMetadataSource().describe_object("Nope__c")

    @patch("spec_bridge.platform.subprocess.run")
    def test_unparseable_output(self, mock_run):
        mock_run.return_value = _completed("command not found", 127)
        with pytest.raises(ExternalCallError, match="Unparseable CLI output"):
            SfCliMetadataSource().describe_object("Account")

    @patch("spec_bridge.platform.subprocess.run")
    def test_deploy_reports_instead_of_raising(self, mock_run):
        mock_run.return_value = _completed({"status": 1, "message": "Deploy failed: 2 components"}, 1)
        result = SfCliMetadataSource().deploy("force-app")
        assert result.success is False
        assert "Deploy failed" in result.message

        mock_run.return_value = _completed({"status": 0, "result": {"status": "Succeeded"}})
        result = SfCliMetadataSource().deploy("force-app")
        assert result.success is True
        assert mock_run.call_args.args[0] == ["sf", "project", "deploy", "start", "--source-dir", "force-app", "--json"]


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class TestCachedMetadataSource:
    def _source(self):
        source = MagicMock()
        source.describe_object.return_value = [PlatformField(name="Name")]
        return source

    def test_hit_within_ttl(self):
        source, clock = self._source(), FakeClock()
        cached = CachedMetadataSource(source, ttl=300, clock=clock)
        cached.describe_object("Account")
        clock.now = 299
        cached.describe_object("Account")
        assert source.describe_object.call_count == 1

    def test_expiry(self):
        source, clock = self._source(), FakeClock()
        cached = CachedMetadataSource(source, ttl=300, clock=clock)
        cached.describe_object("Account")
        clock.now = 300
        cached.describe_object("Account")
        assert source.describe_object.call_count == 2

    def test_keys_per_object(self):
        source = self._source()
        cached = CachedMetadataSource(source, clock=FakeClock())
        cached.describe_object("Account")
        cached.describe_object("Contact")
        assert source.describe_object.call_count == 2

    def test_force_refresh_and_clear(self):
        source = self._source()
        cached = CachedMetadataSource(source, clock=FakeClock())
        cached.describe_object("Account")
        cached.describe_object("Account", force_refresh=True)
        cached.clear()
        cached.describe_object("Account")
        assert source.describe_object.call_count == 3

    def test_query_not_cached(self):
        source = self._source()
        source.query.return_value = []
        cached = CachedMetadataSource(source, clock=FakeClock())
        cached.query("SELECT Id FROM Account")
        cached.query("SELECT Id FROM Account")
        assert source.query.call_count == 2
