"""Panel discovery routes used to build the manual entry form."""

from fastapi import APIRouter, Depends, HTTPException, status

from app.auth import verify_api_key
from app.schemas.analysis import AnalyteInfo, PanelDetail, PanelSummary
from app.services.panels import Panel, UnknownPanelError, registry

router = APIRouter(
    prefix="/panels",
    tags=["panels"],
    dependencies=[Depends(verify_api_key)],
)


def _summary(panel: Panel) -> PanelSummary:
    return PanelSummary(
        id=panel.id,
        name=panel.name,
        description=panel.description,
        analyte_count=len(panel),
    )


@router.get("", response_model=list[PanelSummary])
async def list_panels() -> list[PanelSummary]:
    """List registered panels in registration order."""
    return [_summary(panel) for panel in registry.values()]


@router.get("/{panel_id}", response_model=PanelDetail)
async def get_panel_detail(panel_id: str) -> PanelDetail:
    """Get a panel's analytes with units and reference ranges.

    Raises:
        HTTPException: 404 if the panel is not registered.
    """
    try:
        panel = registry.get(panel_id)
    except UnknownPanelError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Panel not found",
        )

    return PanelDetail(
        **_summary(panel).model_dump(),
        analytes=[
            AnalyteInfo(
                id=a.id,
                name=a.name,
                unit=a.unit,
                reference_range=str(a.interval),
                sex_ranges={sex: str(i) for sex, i in a.sex_intervals.items()},
                loinc=a.loinc,
            )
            for a in panel
        ],
    )
