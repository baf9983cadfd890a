"""Pydantic schemas for blood test analysis requests and responses."""

import math
from datetime import date
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from app.services.localization import SUPPORTED_LOCALES
from app.services.panels import Sex
from app.services.reference_ranges import Status

MeasurementValue = float | str | None


class Specimen(BaseModel):
    """Who the sample came from and how it was collected."""

    sex: Sex | None = None
    age: int | None = Field(default=None, ge=1, le=120)
    specimen_type: str | None = Field(default=None, description="e.g. 'venous blood'")
    collected_at: date | None = None


class ManualEntryRequest(BaseModel):
    """Values typed into the manual entry form."""

    panel: str | None = Field(default=None, description="Panel id; server default if omitted")
    sex: Sex
    age: int = Field(..., ge=1, le=120)
    values: dict[str, MeasurementValue] = Field(default_factory=dict)
    specimen_type: str | None = None
    collected_at: date | None = None
    locale: str | None = None
    interpret: bool = Field(
        default=True,
        description="Request an explanation from the remote analysis service",
    )

    @field_validator("locale")
    @classmethod
    def _known_locale(cls, v: str | None) -> str | None:
        if v is not None and v not in SUPPORTED_LOCALES:
            raise ValueError(f"Unsupported locale {v!r}")
        return v

    def specimen(self) -> Specimen:
        return Specimen(
            sex=self.sex,
            age=self.age,
            specimen_type=self.specimen_type,
            collected_at=self.collected_at,
        )


class ResultRecord(BaseModel):
    """One row of the results table."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    value: float | None
    unit: str
    reference_range: str = Field(..., alias="referenceRange")
    status: Status
    status_label: str = Field(..., alias="statusLabel")

    @field_serializer("value")
    def _finite_value(self, v: float | None) -> float | None:
        # Infinite readings keep their high/low status but serialize as null
        return v if v is None or math.isfinite(v) else None


class Interpretation(BaseModel):
    """Response body of the remote interpret endpoint."""

    model_config = ConfigDict(extra="ignore")

    explanation: str = ""
    recommendations: list[str] = Field(default_factory=list)
    inflammation_index: float | None = None
    results: list[dict[str, Any]] = Field(default_factory=list)

    def critical_flags(self) -> dict[str, Status]:
        """Analytes the remote service reported as critical, keyed by id or name."""
        flags: dict[str, Status] = {}
        for item in self.results:
            if item.get("status") != Status.CRITICAL.value:
                continue
            key = item.get("id") or item.get("name")
            if key:
                flags[key] = Status.CRITICAL
        return flags


class AnalysisResponse(BaseModel):
    """Everything the results screen needs for one submission."""

    model_config = ConfigDict(populate_by_name=True)

    panel: str
    specimen: Specimen | None = None
    results: list[ResultRecord]
    normal: list[ResultRecord]
    abnormal: list[ResultRecord]
    abnormal_count: int
    not_evaluated: int
    summary: str
    explanation: str | None = None
    recommendations: list[str] = Field(default_factory=list)
    inflammation_index: float | None = None


class AnalyteInfo(BaseModel):
    """Panel analyte as exposed to form builders."""

    id: str
    name: str
    unit: str
    reference_range: str
    sex_ranges: dict[str, str] = Field(default_factory=dict)
    loinc: str | None = None


class PanelSummary(BaseModel):
    id: str
    name: str
    description: str = ""
    analyte_count: int


class PanelDetail(PanelSummary):
    analytes: list[AnalyteInfo]
