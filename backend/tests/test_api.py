"""Integration tests for service endpoints, panels, API key auth and startup."""

import json

import pytest

from app.config import settings
from app.main import app, lifespan
from app.services.panels import registry
from app.services.reference_ranges import ReferenceRangeError


# =============================================================================
# Service Endpoints
# =============================================================================


class TestServiceEndpoints:
    """Tests for /health, / and the response middleware."""

    @pytest.mark.asyncio
    async def test_health_check(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}

    @pytest.mark.asyncio
    async def test_root_describes_api(self, client):
        response = await client.get("/")
        assert response.status_code == 200
        assert response.json() == {
            "name": "Bloodwork API",
            "version": "0.1.0",
            "docs": "/docs",
        }

    @pytest.mark.asyncio
    async def test_security_headers_on_api_routes(self, client):
        response = await client.get("/api/panels")
        assert response.headers["X-Frame-Options"] == "DENY"
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["Cache-Control"] == "no-store"
        assert "Referrer-Policy" in response.headers

    @pytest.mark.asyncio
    async def test_cors_preflight_from_frontend(self, client):
        response = await client.options(
            "/api/analysis/manual",
            headers={
                "Origin": "http://localhost:3000",
                "Access-Control-Request-Method": "POST",
            },
        )
        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "http://localhost:3000"

    @pytest.mark.asyncio
    async def test_cors_rejects_unknown_origin(self, client):
        response = await client.options(
            "/api/analysis/manual",
            headers={
                "Origin": "http://evil.example",
                "Access-Control-Request-Method": "POST",
            },
        )
        assert "access-control-allow-origin" not in response.headers


# =============================================================================
# Panel Endpoints
# =============================================================================


class TestPanelEndpoints:
    """Tests for GET /api/panels and GET /api/panels/{panel_id}."""

    @pytest.mark.asyncio
    async def test_list_panels(self, client):
        response = await client.get("/api/panels")
        assert response.status_code == 200
        data = response.json()
        ids = [p["id"] for p in data]
        assert ids[:2] == ["cbc_basic", "cbc_extended"]
        assert data[0]["analyte_count"] == 13
        assert data[1]["analyte_count"] == 14

    @pytest.mark.asyncio
    async def test_panel_detail(self, client):
        response = await client.get("/api/panels/cbc_extended")
        assert response.status_code == 200
        data = response.json()
        assert data["name"] == "Complete Blood Count with Differential"
        hgb = data["analytes"][0]
        assert hgb == {
            "id": "hemoglobin",
            "name": "Hemoglobin",
            "unit": "g/L",
            "reference_range": "120-140",
            "sex_ranges": {"male": "130-160", "female": "120-140"},
            "loinc": "718-7",
        }

    @pytest.mark.asyncio
    async def test_panel_not_found(self, client):
        response = await client.get("/api/panels/unknown")
        assert response.status_code == 404
        assert response.json()["detail"] == "Panel not found"


# =============================================================================
# Authentication Tests
# =============================================================================


class TestApiKeyAuth:
    """API key is only enforced when API_KEY is configured."""

    @pytest.fixture(autouse=True)
    def _api_key(self, monkeypatch):
        monkeypatch.setattr(settings, "api_key", "test-key")

    @pytest.mark.asyncio
    async def test_missing_key_returns_401(self, client):
        response = await client.get("/api/panels")
        assert response.status_code == 401
        assert response.json()["detail"] == "Missing API key"

    @pytest.mark.asyncio
    async def test_wrong_key_returns_401(self, client):
        response = await client.get("/api/panels", headers={"X-API-Key": "wrong"})
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid API key"

    @pytest.mark.asyncio
    async def test_valid_key(self, client):
        response = await client.get("/api/panels", headers={"X-API-Key": "test-key"})
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_analysis_requires_key(self, client):
        response = await client.post(
            "/api/analysis/manual", json={"sex": "male", "age": 30, "values": {}}
        )
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_health_is_public(self, client):
        response = await client.get("/health")
        assert response.status_code == 200


# =============================================================================
# Startup
# =============================================================================


class TestLifespan:
    """Panels from PANELS_FILE are registered at startup."""

    @pytest.fixture(autouse=True)
    def _restore_registry(self):
        saved = dict(registry._panels)
        yield
        registry._panels.clear()
        registry._panels.update(saved)

    @pytest.mark.asyncio
    async def test_panels_file_registered(self, tmp_path, monkeypatch):
        path = tmp_path / "panels.json"
        path.write_text(
            json.dumps(
                {
                    "id": "lab_startup",
                    "name": "Startup Panel",
                    "analytes": [
                        {"id": "platelets", "name": "PLT", "unit": "G/L", "range": "100-300"}
                    ],
                }
            ),
            encoding="utf-8",
        )
        monkeypatch.setattr(settings, "panels_file", str(path))

        async with lifespan(app):
            assert registry.get("lab_startup").name == "Startup Panel"

    def test_startup_panel_not_left_registered(self):
        assert "lab_startup" not in registry

    @pytest.mark.asyncio
    async def test_malformed_panels_file_aborts_startup(self, tmp_path, monkeypatch):
        path = tmp_path / "bad.json"
        path.write_text(
            json.dumps(
                {"id": "bad", "analytes": [{"id": "x", "name": "X", "unit": "u", "range": "9-1"}]}
            ),
            encoding="utf-8",
        )
        monkeypatch.setattr(settings, "panels_file", str(path))

        with pytest.raises(ReferenceRangeError):
            async with lifespan(app):
                pass

    @pytest.mark.asyncio
    async def test_unknown_default_panel_aborts_startup(self, monkeypatch):
        monkeypatch.setattr(settings, "default_panel", "missing")
        with pytest.raises(RuntimeError, match="DEFAULT_PANEL"):
            async with lifespan(app):
                pass
