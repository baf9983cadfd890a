"""Pydantic schemas."""

from app.schemas.analysis import (
    AnalysisResponse,
    AnalyteInfo,
    Interpretation,
    ManualEntryRequest,
    PanelDetail,
    PanelSummary,
    ResultRecord,
    Specimen,
)

__all__ = [
    "AnalysisResponse",
    "AnalyteInfo",
    "Interpretation",
    "ManualEntryRequest",
    "PanelDetail",
    "PanelSummary",
    "ResultRecord",
    "Specimen",
]
