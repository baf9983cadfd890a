"""Analyte panel definitions and registry.

A panel is the fixed set of analytes reported together for one test type,
each with its unit and reference interval. Different laboratories report
the same analyte in different units (hemoglobin in g/dL vs g/L), so panels
are named configurations passed to the report builder rather than a single
global table.

Reference values are demo-grade, taken from common adult CBC references.
Not for clinical use.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, ValidationError, field_validator

from app.services.reference_ranges import ReferenceInterval, ReferenceRangeError

logger = logging.getLogger(__name__)

Sex = Literal["male", "female"]


class UnknownPanelError(KeyError):
    """Raised when a panel id is not registered."""


@dataclass(frozen=True)
class Analyte:
    """One measured blood component within a panel."""

    id: str
    name: str
    unit: str
    interval: ReferenceInterval
    sex_intervals: dict[str, ReferenceInterval] = field(default_factory=dict, hash=False)
    loinc: str | None = None

    def interval_for(self, sex: str | None = None) -> ReferenceInterval:
        """Return the sex-specific interval when defined, else the default."""
        if sex and sex in self.sex_intervals:
            return self.sex_intervals[sex]
        return self.interval


@dataclass(frozen=True)
class Panel:
    """Named, ordered set of analytes. Order is the display order."""

    id: str
    name: str
    analytes: tuple[Analyte, ...]
    description: str = ""

    def __post_init__(self) -> None:
        seen: set[str] = set()
        for analyte in self.analytes:
            if analyte.id in seen:
                raise ReferenceRangeError(
                    f"Panel {self.id!r} defines analyte {analyte.id!r} twice"
                )
            seen.add(analyte.id)

    def __len__(self) -> int:
        return len(self.analytes)

    def __iter__(self):
        return iter(self.analytes)

    def __contains__(self, analyte_id: object) -> bool:
        return any(a.id == analyte_id for a in self.analytes)

    def get(self, analyte_id: str) -> Analyte | None:
        for analyte in self.analytes:
            if analyte.id == analyte_id:
                return analyte
        return None

    @property
    def analyte_ids(self) -> list[str]:
        return [a.id for a in self.analytes]


# ---------------------------------------------------------------------------
# Panel loading
#
# Structure:
#   {
#       "id": str,
#       "name": str,
#       "description": str,            # optional
#       "analytes": [
#           {
#               "id": str,
#               "name": str,
#               "unit": str,
#               "range": "min-max" | [min, max] | {"low", "high"},
#               "ranges": {"male": ..., "female": ...},   # optional
#               "loinc": str,                               # optional
#           },
#       ],
#   }
# ---------------------------------------------------------------------------

class AnalyteDefinition(BaseModel):
    """Shape of one analyte entry in a panel definition."""

    id: str
    name: str
    unit: str
    range: Any
    ranges: dict[Sex, Any] = Field(default_factory=dict)
    loinc: str | None = None

    @field_validator("range")
    @classmethod
    def _parse_range(cls, v: Any) -> ReferenceInterval:
        return ReferenceInterval.parse(v)

    @field_validator("ranges")
    @classmethod
    def _parse_ranges(cls, v: dict[str, Any]) -> dict[str, ReferenceInterval]:
        return {sex: ReferenceInterval.parse(raw) for sex, raw in v.items()}

    def to_analyte(self) -> Analyte:
        return Analyte(
            id=self.id,
            name=self.name,
            unit=self.unit,
            interval=self.range,
            sex_intervals=dict(self.ranges),
            loinc=self.loinc,
        )


class PanelDefinition(BaseModel):
    """Shape of a panel definition as stored in JSON."""

    id: str
    name: str | None = None
    description: str = ""
    analytes: list[AnalyteDefinition] = Field(..., min_length=1)

    def to_panel(self) -> Panel:
        return Panel(
            id=self.id,
            name=self.name or self.id,
            analytes=tuple(a.to_analyte() for a in self.analytes),
            description=self.description,
        )


def load_panel(data: Any) -> Panel:
    """Build a Panel from plain data, validating every interval.

    Raises:
        ReferenceRangeError: on missing or mistyped fields, malformed
            intervals, unknown sex keys or duplicate analyte ids.
    """
    try:
        definition = PanelDefinition.model_validate(data)
    except ValidationError as e:
        panel_id = data.get("id") if isinstance(data, dict) else None
        raise ReferenceRangeError(f"Panel {panel_id!r}: {e}") from e
    return definition.to_panel()


def load_panels_file(path: str | Path) -> list[Panel]:
    """Load one panel or a list of panels from a JSON file."""
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    entries = data if isinstance(data, list) else [data]
    panels = [load_panel(entry) for entry in entries]
    logger.info("Loaded %d panel(s) from %s", len(panels), path)
    return panels


# ---------------------------------------------------------------------------
# Built-in panels
# ---------------------------------------------------------------------------

CBC_BASIC: dict[str, Any] = {
    "id": "cbc_basic",
    "name": "Complete Blood Count",
    "description": "CBC in US conventional units with percentage differential.",
    "analytes": [
        {"id": "hemoglobin", "name": "Hemoglobin", "unit": "g/dL",
         "range": "13.5-17.5", "ranges": {"male": "13.5-17.5", "female": "12.0-15.5"},
         "loinc": "718-7"},
        {"id": "white_blood_cells", "name": "White Blood Cells", "unit": "×10³/µL",
         "range": "4.5-11.0", "loinc": "6690-2"},
        {"id": "red_blood_cells", "name": "Red Blood Cells", "unit": "×10⁶/µL",
         "range": "4.5-5.9", "ranges": {"male": "4.5-5.9", "female": "4.1-5.1"},
         "loinc": "789-8"},
        {"id": "platelets", "name": "Platelets", "unit": "×10³/µL",
         "range": "150-450", "loinc": "777-3"},
        {"id": "hematocrit", "name": "Hematocrit", "unit": "%",
         "range": "41-50", "ranges": {"male": "41-50", "female": "36-44"},
         "loinc": "4544-3"},
        {"id": "mcv", "name": "MCV", "unit": "fL", "range": "80-96", "loinc": "787-2"},
        {"id": "mch", "name": "MCH", "unit": "pg", "range": "27-33", "loinc": "785-6"},
        {"id": "mchc", "name": "MCHC", "unit": "g/dL", "range": "32-36", "loinc": "786-4"},
        {"id": "neutrophils_percent", "name": "Neutrophils", "unit": "%",
         "range": "40-60", "loinc": "770-8"},
        {"id": "lymphocytes_percent", "name": "Lymphocytes", "unit": "%",
         "range": "20-40", "loinc": "736-9"},
        {"id": "monocytes_percent", "name": "Monocytes", "unit": "%",
         "range": "2-8", "loinc": "5905-5"},
        {"id": "eosinophils_percent", "name": "Eosinophils", "unit": "%",
         "range": "1-4", "loinc": "713-8"},
        {"id": "basophils_percent", "name": "Basophils", "unit": "%",
         "range": "0-1", "loinc": "706-2"},
    ],
}

CBC_EXTENDED: dict[str, Any] = {
    "id": "cbc_extended",
    "name": "Complete Blood Count with Differential",
    "description": "CBC in SI units with percent and absolute differential counts.",
    "analytes": [
        {"id": "hemoglobin", "name": "Hemoglobin", "unit": "g/L",
         "range": "120-140", "ranges": {"male": "130-160", "female": "120-140"},
         "loinc": "718-7"},
        {"id": "white_blood_cells", "name": "White Blood Cells", "unit": "×10⁹/L",
         "range": "4,0-9,0", "loinc": "6690-2"},
        {"id": "red_blood_cells", "name": "Red Blood Cells", "unit": "×10¹²/L",
         "range": "3,9-5,0", "ranges": {"male": "4,0-5,0", "female": "3,9-4,7"},
         "loinc": "789-8"},
        {"id": "platelets", "name": "Platelets", "unit": "×10⁹/L",
         "range": "180-320", "loinc": "777-3"},
        {"id": "neutrophils_percent", "name": "Neutrophils", "unit": "%",
         "range": "47-72", "loinc": "770-8"},
        {"id": "neutrophils_absolute", "name": "Neutrophils (absolute)", "unit": "×10⁹/L",
         "range": "2,0-5,5", "loinc": "751-8"},
        {"id": "lymphocytes_percent", "name": "Lymphocytes", "unit": "%",
         "range": "19-37", "loinc": "736-9"},
        {"id": "lymphocytes_absolute", "name": "Lymphocytes (absolute)", "unit": "×10⁹/L",
         "range": "1,2-3,0", "loinc": "731-0"},
        {"id": "monocytes_percent", "name": "Monocytes", "unit": "%",
         "range": "3-11", "loinc": "5905-5"},
        {"id": "monocytes_absolute", "name": "Monocytes (absolute)", "unit": "×10⁹/L",
         "range": "0,09-0,6", "loinc": "742-7"},
        {"id": "eosinophils_percent", "name": "Eosinophils", "unit": "%",
         "range": "0,5-5", "loinc": "713-8"},
        {"id": "eosinophils_absolute", "name": "Eosinophils (absolute)", "unit": "×10⁹/L",
         "range": "0,02-0,3", "loinc": "711-2"},
        {"id": "basophils_percent", "name": "Basophils", "unit": "%",
         "range": "0-1", "loinc": "706-2"},
        {"id": "basophils_absolute", "name": "Basophils (absolute)", "unit": "×10⁹/L",
         "range": "0-0,065", "loinc": "704-7"},
    ],
}


class PanelRegistry:
    """Panels keyed by id, in registration order."""

    def __init__(self, panels: list[Panel] | None = None):
        self._panels: dict[str, Panel] = {}
        for panel in panels or []:
            self.register(panel)

    def register(self, panel: Panel, *, replace: bool = False) -> None:
        if panel.id in self._panels and not replace:
            raise ReferenceRangeError(f"Panel {panel.id!r} is already registered")
        self._panels[panel.id] = panel

    def get(self, panel_id: str) -> Panel:
        try:
            return self._panels[panel_id]
        except KeyError:
            raise UnknownPanelError(panel_id) from None

    def values(self) -> list[Panel]:
        return list(self._panels.values())

    def __contains__(self, panel_id: object) -> bool:
        return panel_id in self._panels


def default_registry() -> PanelRegistry:
    """Registry holding the built-in panels."""
    return PanelRegistry([load_panel(CBC_BASIC), load_panel(CBC_EXTENDED)])


# Process-wide registry used by the API; extended at startup from PANELS_FILE
registry = default_registry()


def get_panel(panel_id: str) -> Panel:
    """Return a registered panel.

    Raises:
        UnknownPanelError: if no panel has this id.
    """
    return registry.get(panel_id)
