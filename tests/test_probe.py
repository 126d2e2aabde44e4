"""Tests for the liveness / identity probe."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import httpx

from aries.registry.probe import identity_marker, liveness_url, probe


class TestHelpers:
    def test_liveness_url_strips_trailing_slash(self):
        assert liveness_url("http://virgo.lib/") == "http://virgo.lib/aries"

    def test_identity_marker(self):
        assert identity_marker("Virgo") == "Virgo Aries API"


class TestProbe:
    async def test_alive_on_200(self, backends):
        url = backends.add("virgo", "Virgo")
        result = await probe(url, "Virgo", client=backends.client())
        assert result.alive is True
        assert result.status_code == 200
        assert len(backends.pings("virgo")) == 1

    async def test_dead_on_bad_status(self, backends):
        url = backends.add("virgo", "Virgo", ping_status=500)
        result = await probe(url, "Virgo", client=backends.client())
        assert result.alive is False
        assert result.status_code == 500

    async def test_dead_on_connection_refused(self, backends):
        result = await probe("http://nowhere", "Nowhere", client=backends.client())
        assert result.alive is False
        assert "refused" in result.detail.lower()

    async def test_dead_on_timeout(self, backends):
        url = backends.add("slow", "Slow", ping_error="timeout")
        result = await probe(url, "Slow", client=backends.client())
        assert result.alive is False

    async def test_identity_not_checked_by_default(self, backends):
        url = backends.add("virgo", "Virgo", ping_body="Welcome to nginx!")
        result = await probe(url, "Virgo", client=backends.client())
        assert result.alive is True

    async def test_identity_mismatch_is_dead(self, backends):
        url = backends.add("virgo", "Virgo", ping_body="Welcome to nginx!")
        result = await probe(url, "Virgo", validate_identity=True, client=backends.client())
        assert result.alive is False
        assert "Virgo Aries API" in result.detail

    async def test_identity_match_is_alive(self, backends):
        url = backends.add("virgo", "Virgo")
        result = await probe(url, "Virgo", validate_identity=True, client=backends.client())
        assert result.alive is True

    async def test_identity_checks_requested_name(self, backends):
        url = backends.add("virgo", "Virgo")
        result = await probe(url, "Tracksys", validate_identity=True, client=backends.client())
        assert result.alive is False

    async def test_identity_requires_exact_marker(self, backends):
        url = backends.add("notvirgo", "NotVirgo")
        result = await probe(url, "Virgo", validate_identity=True, client=backends.client())
        assert result.alive is False

    async def test_identity_ignores_surrounding_whitespace(self, backends):
        url = backends.add("virgo", "Virgo", ping_body="Virgo Aries API\n")
        result = await probe(url, "Virgo", validate_identity=True, client=backends.client())
        assert result.alive is True

    async def test_builds_own_client_with_timeout(self):
        mock_resp = httpx.Response(200, text="Virgo Aries API")
        with patch("httpx.AsyncClient.get", new_callable=AsyncMock, return_value=mock_resp) as get:
            result = await probe("http://virgo", "Virgo", timeout=0.5)
        assert result.alive is True
        get.assert_awaited_once_with("http://virgo/aries")
