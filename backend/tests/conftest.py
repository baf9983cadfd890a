"""Pytest configuration and shared fixtures.

This module provides centralized test fixtures for:
- HTTP client for API testing
- A stubbed remote analysis client
- Common measurement data
"""

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from unittest.mock import AsyncMock, MagicMock

from app.main import app
from app.schemas.analysis import Interpretation
from app.services.analysis_client import AnalysisClient, get_analysis_client
from app.services.panels import get_panel


# =============================================================================
# Remote Analysis Service Fixtures
# =============================================================================


@pytest.fixture
def interpretation() -> Interpretation:
    """Interpretation as returned by the remote analyze endpoint."""
    return Interpretation(
        explanation="Your white blood cell count is elevated.",
        recommendations=["Consider a follow-up appointment."],
        inflammation_index=2.4,
    )


@pytest.fixture
def mock_analysis_client(interpretation) -> MagicMock:
    """Stand-in for AnalysisClient with async methods."""
    client = MagicMock(spec=AnalysisClient)
    client.interpret = AsyncMock(return_value=interpretation)
    client.parse_document = AsyncMock(return_value={})
    return client


# =============================================================================
# HTTP Client Fixtures
# =============================================================================


@pytest_asyncio.fixture
async def client():
    """Async test client with no remote analysis service configured."""
    async def override_get_analysis_client():
        yield None

    app.dependency_overrides[get_analysis_client] = override_get_analysis_client

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.pop(get_analysis_client, None)


@pytest_asyncio.fixture
async def service_client(mock_analysis_client):
    """Async test client whose remote analysis calls hit the mock client."""
    async def override_get_analysis_client():
        yield mock_analysis_client

    app.dependency_overrides[get_analysis_client] = override_get_analysis_client

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac, mock_analysis_client

    app.dependency_overrides.pop(get_analysis_client, None)


# =============================================================================
# Measurement Fixtures
# =============================================================================


@pytest.fixture
def basic_panel():
    return get_panel("cbc_basic")


@pytest.fixture
def extended_panel():
    return get_panel("cbc_extended")


@pytest.fixture
def sample_values() -> dict:
    """Typical form submission for the basic CBC panel.

    White blood cells and neutrophils are high, platelets low.
    """
    return {
        "hemoglobin": "14.2",
        "white_blood_cells": "11.5",
        "red_blood_cells": "5.2",
        "platelets": "140",
        "hematocrit": "42",
        "mcv": "88",
        "mch": "29",
        "mchc": "33",
        "neutrophils_percent": "75",
        "lymphocytes_percent": "20",
        "monocytes_percent": "3",
        "eosinophils_percent": "1",
        "basophils_percent": "0.5",
    }
