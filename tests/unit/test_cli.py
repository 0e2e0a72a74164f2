"""Unit tests for the CLI."""

import json

import pytest
from click.testing import CliRunner

from augpolicy.cli import cli
from augpolicy.cli import commands
from augpolicy.core.errors import ResolutionError
from augpolicy.core.models import SourcePolicy


@pytest.fixture
def fake_dns(monkeypatch):
    results = {"example.com": ["93.184.216.34/32", "169.254.169.254/32"]}

    async def resolve(self, hostname):
        if hostname not in results:
            raise ResolutionError(hostname, "no such host")
        return results[hostname]

    monkeypatch.setattr(commands.NetResolver, "resolve", resolve)
    return results


class TestResolveCommand:
    """Test the resolve command."""

    def test_json_verdicts(self, fake_dns):
        result = CliRunner().invoke(cli, ["resolve", "example.com", "-o", "json"])

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["hostname"] == "example.com"
        assert data["addresses"] == [
            {"cidr": "93.184.216.34/32", "allowed": True},
            {"cidr": "169.254.169.254/32", "allowed": False},
        ]

    def test_allowlist_option(self, fake_dns):
        result = CliRunner().invoke(
            cli, ["resolve", "example.com", "-o", "json", "--ip-allowlist", "10.0.0.0/8,192.168.0.0/16"]
        )

        assert result.exit_code == 0
        assert not any(a["allowed"] for a in json.loads(result.output)["addresses"])

    def test_table_output(self, fake_dns):
        result = CliRunner().invoke(cli, ["resolve", "example.com"])

        assert result.exit_code == 0
        assert "93.184.216.34/32" in result.output
        assert "filtered" in result.output

    def test_resolution_error(self, fake_dns):
        result = CliRunner().invoke(cli, ["resolve", "missing.example.com"])

        assert result.exit_code == 0
        assert "no such host" in result.output

    def test_invalid_denylist(self, fake_dns):
        result = CliRunner().invoke(cli, ["resolve", "example.com", "--ip-denylist", "not-a-cidr"])

        assert "Error" in result.output


class TestListCommand:
    """Test the list command against a stubbed client."""

    def test_json_output(self, monkeypatch, make_source):
        policy = SourcePolicy.from_manifest(make_source([["example.com", "api.example.com"]]))

        class StubClient:
            def __init__(self, kubeconfig=None):
                pass

            async def list_source_policies(self, namespace=None):
                return [policy]

            async def close(self):
                pass

        monkeypatch.setattr(commands, "K8sClient", StubClient)

        result = CliRunner().invoke(cli, ["list", "-o", "json"])

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data == [
            {
                "name": "allow-example",
                "namespace": "default",
                "ready": "Unknown",
                "reason": "",
                "hostnames": ["example.com", "api.example.com"],
                "resolvedAddresses": {},
            }
        ]


class TestConfigErrors:
    """Test that invalid configuration is reported as a usage error."""

    def test_invalid_environment_value(self, fake_dns, monkeypatch):
        monkeypatch.setenv("AUGPOLICY_RESOLVE_TIMEOUT", "0")

        result = CliRunner().invoke(cli, ["resolve", "example.com"])

        assert result.exit_code == 2
        assert "resolve_timeout" in result.output
