"""Blood test analysis API routes.

Two entry points feed the same pipeline: values typed into the manual entry
form, or values extracted from an uploaded lab report by the remote parse
endpoint. Values are classified locally against the selected panel; the
remote analysis service, when configured, adds the explanation,
recommendations and inflammation index.
"""

import logging
from collections.abc import Mapping
from typing import Any

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status

from app.auth import verify_api_key
from app.config import settings
from app.schemas.analysis import (
    AnalysisResponse,
    Interpretation,
    ManualEntryRequest,
    ResultRecord,
    Specimen,
)
from app.services.analysis_client import (
    AnalysisClient,
    AnalysisServiceError,
    get_analysis_client,
)
from app.services.localization import SUPPORTED_LOCALES, status_label, translate
from app.services.panels import Panel, Sex, UnknownPanelError, get_panel
from app.services.report_builder import ClassifiedMeasurement, Report, build_report
from app.services.reference_ranges import Status

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/analysis",
    tags=["analysis"],
    dependencies=[Depends(verify_api_key)],
)

ALLOWED_UPLOAD_TYPES = frozenset({"image/jpeg", "image/png", "application/pdf"})


def _resolve_panel(panel_id: str | None) -> Panel:
    """Return the requested panel, or the configured default.

    Raises:
        HTTPException: 404 if the panel id is unknown.
    """
    try:
        return get_panel(panel_id or settings.default_panel)
    except UnknownPanelError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown panel: {panel_id or settings.default_panel}",
        )


def _to_record(m: ClassifiedMeasurement, locale: str) -> ResultRecord:
    return ResultRecord(
        id=m.analyte_id,
        name=m.name,
        value=m.value,
        unit=m.unit,
        reference_range=m.reference_range,
        status=m.status,
        status_label=status_label(m.status, locale),
    )


def _summary(report: Report, locale: str) -> str:
    if report.has_abnormalities:
        return translate("summary.abnormal", locale)
    if report.not_evaluated():
        return translate("summary.incomplete", locale)
    return translate("summary.normal", locale)


async def _interpret(
    client: AnalysisClient | None,
    measurements: Mapping[str, Any],
) -> Interpretation | None:
    if client is None:
        return None
    try:
        return await client.interpret(measurements)
    except AnalysisServiceError as e:
        logger.exception("Interpretation request failed")
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=str(e),
        )


async def _analyze(
    panel: Panel,
    measurements: Mapping[str, Any],
    specimen: Specimen,
    locale: str | None,
    client: AnalysisClient | None,
) -> AnalysisResponse:
    """Classify, optionally interpret, and shape the response."""
    locale = locale or settings.default_locale
    report = build_report(
        panel,
        measurements,
        sex=specimen.sex,
        missing=Status(settings.missing_value_status),
    )

    # Only the selected panel's analytes are sent, in that panel's units
    in_panel = {k: v for k, v in measurements.items() if k in panel}
    interpretation = await _interpret(client, in_panel)
    if interpretation is not None:
        report = report.with_statuses(interpretation.critical_flags())

    logger.info(
        "Analyzed %d analytes on panel %s: %d abnormal",
        len(report),
        panel.id,
        len(report.abnormal()),
    )

    return AnalysisResponse(
        panel=panel.id,
        specimen=specimen,
        results=[_to_record(m, locale) for m in report],
        normal=[_to_record(m, locale) for m in report.normal()],
        abnormal=[_to_record(m, locale) for m in report.abnormal()],
        abnormal_count=sum(1 for m in report.abnormal() if m.status is not Status.UNKNOWN),
        not_evaluated=len(report.not_evaluated()),
        summary=_summary(report, locale),
        explanation=interpretation.explanation if interpretation else None,
        recommendations=interpretation.recommendations if interpretation else [],
        inflammation_index=interpretation.inflammation_index if interpretation else None,
    )


@router.post("/manual", response_model=AnalysisResponse)
async def analyze_manual_entry(
    request: ManualEntryRequest,
    client: AnalysisClient | None = Depends(get_analysis_client),
) -> AnalysisResponse:
    """Analyze values typed into the manual entry form.

    Values may be numbers or strings; blank or unparseable entries are
    reported with the missing-value status rather than rejected.
    """
    panel = _resolve_panel(request.panel)
    return await _analyze(
        panel,
        request.values,
        request.specimen(),
        request.locale,
        client if request.interpret else None,
    )


@router.post("/upload", response_model=AnalysisResponse)
async def analyze_upload(
    file: UploadFile = File(...),
    sex: Sex | None = Form(None),
    age: int | None = Form(None, ge=1, le=120),
    panel: str | None = Form(None),
    locale: str | None = Form(None),
    client: AnalysisClient | None = Depends(get_analysis_client),
) -> AnalysisResponse:
    """Analyze an uploaded lab report (JPG, PNG or PDF).

    Sex and age are optional; without sex the default intervals apply.

    Raises:
        HTTPException: 415 for other file types, 413 when the file exceeds
            MAX_UPLOAD_BYTES, 503 when no analysis service is configured,
            502 when the service fails.
    """
    if file.content_type not in ALLOWED_UPLOAD_TYPES:
        raise HTTPException(
            status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
            detail="Please upload a JPG, PNG, or PDF file",
        )
    if locale is not None and locale not in SUPPORTED_LOCALES:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Unsupported locale {locale!r}",
        )

    selected_panel = _resolve_panel(panel)

    if client is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Document upload requires the analysis service",
        )

    too_large = HTTPException(
        status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
        detail=f"File exceeds {settings.max_upload_bytes} bytes",
    )
    if file.size is not None and file.size > settings.max_upload_bytes:
        raise too_large
    content = await file.read()
    if len(content) > settings.max_upload_bytes:
        raise too_large

    try:
        measurements = await client.parse_document(
            file.filename or "upload", content, file.content_type
        )
    except AnalysisServiceError as e:
        logger.exception("Document parsing failed for %s", file.filename)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=str(e),
        )

    return await _analyze(
        selected_panel,
        measurements,
        Specimen(sex=sex, age=age),
        locale,
        client,
    )
