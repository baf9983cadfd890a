"""Client for the remote blood test analysis service.

The service exposes two endpoints:
    POST /parse    multipart upload of a lab report; returns analyte values
    POST /analyze  flat JSON of analyte values; returns an interpretation

Requests are single-shot: no retry or backoff.
"""

import logging
import math
from collections.abc import Mapping
from typing import Any

import httpx
from pydantic import ValidationError

from app.config import settings
from app.schemas.analysis import Interpretation
from app.services.reference_ranges import parse_value

logger = logging.getLogger(__name__)

# Keys of the /analyze request body, in the order the service documents them
ANALYSIS_PAYLOAD_KEYS: tuple[str, ...] = (
    "hemoglobin",
    "white_blood_cells",
    "red_blood_cells",
    "platelets",
    "neutrophils_percent",
    "neutrophils_absolute",
    "lymphocytes_percent",
    "lymphocytes_absolute",
    "monocytes_percent",
    "monocytes_absolute",
    "eosinophils_percent",
    "eosinophils_absolute",
    "basophils_percent",
    "basophils_absolute",
)


class AnalysisServiceError(RuntimeError):
    """Raised when the remote analysis service fails or answers garbage."""


def build_analysis_payload(measurements: Mapping[str, Any]) -> dict[str, float | None]:
    """Project measurements onto the fixed /analyze request shape.

    Every key is present; values not supplied, not numeric or not finite are
    null. Analytes outside the fixed key set are not sent.
    """
    payload = {}
    for key in ANALYSIS_PAYLOAD_KEYS:
        value = parse_value(measurements.get(key))
        payload[key] = value if value is not None and math.isfinite(value) else None
    return payload


def normalize_parsed_values(data: Any) -> dict[str, float | None]:
    """Validate a /parse response into analyte id -> value."""
    if not isinstance(data, dict):
        raise AnalysisServiceError("Parse response is not a JSON object")
    # Some deployments wrap the values as {"values": {...}}
    if isinstance(data.get("values"), dict):
        data = data["values"]
    return {str(key): parse_value(value) for key, value in data.items()}


class AnalysisClient:
    """Async wrapper around the remote parse and analyze endpoints."""

    def __init__(
        self,
        base_url: str,
        token: str = "",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "AnalysisClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def _post(self, path: str, **kwargs) -> Any:
        try:
            response = await self._client.post(path, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.warning(
                "Analysis service %s returned %s", path, e.response.status_code
            )
            raise AnalysisServiceError(
                f"Analysis service returned {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            logger.warning("Analysis service %s unreachable: %s", path, e)
            raise AnalysisServiceError("Analysis service unavailable") from e

        try:
            return response.json()
        except ValueError as e:
            raise AnalysisServiceError("Analysis service returned invalid JSON") from e

    async def parse_document(
        self,
        filename: str,
        content: bytes,
        content_type: str,
    ) -> dict[str, float | None]:
        """Extract analyte values from an uploaded lab report."""
        data = await self._post(
            "/parse",
            files={"file": (filename, content, content_type)},
        )
        values = normalize_parsed_values(data)
        logger.info("Parsed %d value(s) from %s", len(values), filename)
        return values

    async def interpret(self, measurements: Mapping[str, Any]) -> Interpretation:
        """Ask the service for an explanation of the measured values."""
        data = await self._post("/analyze", json=build_analysis_payload(measurements))
        try:
            return Interpretation.model_validate(data)
        except ValidationError as e:
            raise AnalysisServiceError("Malformed interpretation response") from e


async def get_analysis_client():
    """FastAPI dependency yielding a client, or None when not configured."""
    if not settings.analysis_service_url:
        yield None
        return

    client = AnalysisClient(
        settings.analysis_service_url,
        token=settings.analysis_service_token,
        timeout=settings.analysis_timeout_seconds,
    )
    try:
        yield client
    finally:
        await client.close()
