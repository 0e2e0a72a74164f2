"""Unit tests for hostname resolvers."""

import asyncio
import socket

import pytest

from augpolicy.core.errors import ResolutionError
from augpolicy.dns import NetResolver, StaticResolver, to_cidr


class TestToCIDR:
    """Test address to CIDR conversion."""

    @pytest.mark.parametrize(
        ("address", "expected"),
        [
            ("1.2.3.4", "1.2.3.4/32"),
            ("::1", "::1/128"),
            ("2001:db8::1", "2001:db8::1/128"),
            ("invalid", ""),
            ("", ""),
        ],
    )
    def test_to_cidr(self, address, expected):
        assert to_cidr(address) == expected


def _addrinfo(*addresses):
    infos = []
    for address in addresses:
        if ":" in address:
            infos.append((socket.AF_INET6, socket.SOCK_STREAM, 6, "", (address, 0, 0, 0)))
        else:
            infos.append((socket.AF_INET, socket.SOCK_STREAM, 6, "", (address, 0)))
    return infos


class TestNetResolver:
    """Test NetResolver with a patched event loop resolver."""

    def test_resolve_sorts_and_deduplicates(self, monkeypatch):
        """Test deterministic output for identical underlying answers."""

        async def fake_getaddrinfo(self, host, port, **kwargs):
            return _addrinfo("93.184.216.35", "2606:2800:220:1::", "93.184.216.34", "93.184.216.35")

        monkeypatch.setattr(asyncio.BaseEventLoop, "getaddrinfo", fake_getaddrinfo)

        result = asyncio.run(NetResolver().resolve("example.com"))

        assert result == ["2606:2800:220:1::/128", "93.184.216.34/32", "93.184.216.35/32"]

    def test_resolve_error(self, monkeypatch):
        """Test that resolver failures carry the hostname."""

        async def fake_getaddrinfo(self, host, port, **kwargs):
            raise socket.gaierror(socket.EAI_NONAME, "Name or service not known")

        monkeypatch.setattr(asyncio.BaseEventLoop, "getaddrinfo", fake_getaddrinfo)

        with pytest.raises(ResolutionError) as exc_info:
            asyncio.run(NetResolver().resolve("nonexistent.invalid"))

        assert exc_info.value.hostname == "nonexistent.invalid"

    def test_resolve_timeout(self, monkeypatch):
        """Test that a slow lookup fails fast instead of blocking."""

        async def slow_getaddrinfo(self, host, port, **kwargs):
            await asyncio.sleep(10)
            return []

        monkeypatch.setattr(asyncio.BaseEventLoop, "getaddrinfo", slow_getaddrinfo)

        with pytest.raises(ResolutionError, match="timed out"):
            asyncio.run(NetResolver(timeout=0.05).resolve("slow.example.com"))


class TestStaticResolver:
    """Test the static stand-in resolver."""

    def test_known_unknown_and_failing_hosts(self):
        resolver = StaticResolver({"a.example.com": ["1.1.1.1/32"]}, errors={"b.example.com": "boom"})

        assert asyncio.run(resolver.resolve("a.example.com")) == ["1.1.1.1/32"]
        assert asyncio.run(resolver.resolve("unknown.example.com")) == []
        with pytest.raises(ResolutionError):
            asyncio.run(resolver.resolve("b.example.com"))
        assert resolver.calls == ["a.example.com", "unknown.example.com", "b.example.com"]
