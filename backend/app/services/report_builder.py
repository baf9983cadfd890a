"""Build classified reports from a panel and a set of measured values.

Every analyte of the panel yields exactly one record, in panel order, whether
or not a value was supplied. Missing or unparseable values flow through the
classifier's ``missing`` status instead of being dropped.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, replace
from typing import Any

from app.services.panels import Analyte, Panel
from app.services.reference_ranges import (
    ReferenceInterval,
    Status,
    classify,
    parse_value,
)

logger = logging.getLogger(__name__)

_ABNORMAL_STATUSES = frozenset({Status.LOW, Status.HIGH, Status.CRITICAL})


@dataclass(frozen=True)
class ClassifiedMeasurement:
    """One analyte value with its interval and computed status."""

    analyte_id: str
    name: str
    value: float | None
    unit: str
    interval: ReferenceInterval
    status: Status

    @property
    def reference_range(self) -> str:
        return str(self.interval)

    def to_record(self) -> dict[str, Any]:
        """JSON-serializable record for the display layer."""
        return {
            "id": self.analyte_id,
            "name": self.name,
            "value": self.value,
            "unit": self.unit,
            "referenceRange": self.reference_range,
            "status": self.status.value,
        }


@dataclass(frozen=True)
class Report:
    """Ordered classifications covering a whole panel."""

    panel_id: str
    measurements: tuple[ClassifiedMeasurement, ...]

    def __len__(self) -> int:
        return len(self.measurements)

    def __iter__(self):
        return iter(self.measurements)

    def normal(self) -> tuple[ClassifiedMeasurement, ...]:
        """Records with status normal, in report order."""
        return tuple(m for m in self.measurements if m.status is Status.NORMAL)

    def abnormal(self) -> tuple[ClassifiedMeasurement, ...]:
        """Records with any status other than normal, in report order."""
        return tuple(m for m in self.measurements if m.status is not Status.NORMAL)

    def not_evaluated(self) -> tuple[ClassifiedMeasurement, ...]:
        return tuple(m for m in self.measurements if m.status is Status.UNKNOWN)

    @property
    def has_abnormalities(self) -> bool:
        """True when any record is low, high or critical."""
        return any(m.status in _ABNORMAL_STATUSES for m in self.measurements)

    def with_statuses(self, overrides: Mapping[str, Status]) -> Report:
        """Return a copy where the given analytes carry externally reported statuses.

        Keys may be analyte ids or display names. The report itself is not
        modified.
        """
        if not overrides:
            return self
        measurements = []
        for m in self.measurements:
            status = overrides.get(m.analyte_id, overrides.get(m.name))
            if status is not None and status is not m.status:
                measurements.append(replace(m, status=status))
            else:
                measurements.append(m)
        return Report(panel_id=self.panel_id, measurements=tuple(measurements))

    def to_records(self) -> list[dict[str, Any]]:
        return [m.to_record() for m in self.measurements]


def _classify_analyte(
    analyte: Analyte,
    raw_value: Any,
    sex: str | None,
    missing: Status,
) -> ClassifiedMeasurement:
    interval = analyte.interval_for(sex)
    value = parse_value(raw_value)
    return ClassifiedMeasurement(
        analyte_id=analyte.id,
        name=analyte.name,
        value=value,
        unit=analyte.unit,
        interval=interval,
        status=classify(value, interval, missing=missing),
    )


def build_report(
    panel: Panel,
    measurements: Mapping[str, Any],
    *,
    sex: str | None = None,
    missing: Status = Status.UNKNOWN,
) -> Report:
    """Classify every analyte of a panel.

    Args:
        panel: Panel supplying display order, units and reference intervals.
        measurements: Analyte id -> raw value (number, numeric string or None).
            Keys not defined by the panel are ignored.
        sex: "male", "female" or None; selects sex-specific intervals.
        missing: Status for analytes without a usable value.

    Returns:
        Report with one record per panel analyte, in panel order.
    """
    unknown_keys = set(measurements) - set(panel.analyte_ids)
    if unknown_keys:
        logger.debug(
            "Ignoring values not in panel %s: %s", panel.id, sorted(unknown_keys)
        )

    return Report(
        panel_id=panel.id,
        measurements=tuple(
            _classify_analyte(analyte, measurements.get(analyte.id), sex, missing)
            for analyte in panel
        ),
    )
