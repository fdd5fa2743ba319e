"""
Spreadsheet-backed routes - dealer statistics, dashboard, production status
and van details. Every call reads the sheet afresh.
"""
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel

import config
from api.auth.dependencies import get_allowed_session
from api.helpers import get_sheets_manager, upstream_error
from errors import SheetsFetchError
from sheets import sheet_mapper
from utils.logger import get_logger

router = APIRouter(dependencies=[Depends(get_allowed_session)])


class StatsResponse(BaseModel):
    stats: List[Dict[str, Any]]


class DashboardResponse(BaseModel):
    stats: List[Dict[str, Any]]
    history: List[Dict[str, Any]]


class ProductionStatusResponse(BaseModel):
    productionData: List[Dict[str, Any]]


def build_dashboard(sheets) -> Dict[str, List[Dict]]:
    """Location stats for the current month plus the monthly history."""
    rows = sheets.get_dashboard_rows()
    stats = sheet_mapper.location_stats(rows)
    history = sheet_mapper.historical_data(rows)
    return {
        "stats": [s.to_dict() for s in stats],
        "history": [h.to_dict() for h in history],
    }


@router.get(
    "/api/stats",
    response_model=StatsResponse,
    summary="Dealer counts per location",
)
def get_stats(sheets=Depends(get_sheets_manager)):
    """Vans per dealer location from the schedule's dealer column, with share of total."""
    try:
        rows = sheets.get_dealer_rows()
    except SheetsFetchError as e:
        raise upstream_error("fetch dealer stats", e)

    tally = sheet_mapper.count_dealer_locations(rows)
    get_logger().info(
        f"Processed {tally.processed} dealers, {tally.total} matched a location",
        "Stats",
    )
    return {"stats": [s.to_dict() for s in tally.stats()]}


@router.get(
    "/api/dashboard",
    response_model=DashboardResponse,
    summary="Month-over-month location stats and history",
)
def get_dashboard(sheets=Depends(get_sheets_manager)):
    try:
        return build_dashboard(sheets)
    except (SheetsFetchError, ValueError) as e:
        raise upstream_error("fetch dashboard data", e)


@router.get(
    "/dashboard",
    response_model=DashboardResponse,
    summary="Dashboard home",
)
def dashboard_home(sheets=Depends(get_sheets_manager)):
    """Landing page data for signed-in, allow-listed users."""
    try:
        return build_dashboard(sheets)
    except (SheetsFetchError, ValueError) as e:
        raise upstream_error("fetch dashboard data", e)


@router.get(
    "/api/production-status",
    response_model=ProductionStatusResponse,
    summary="Production stage of every current van",
)
def get_production_status(sheets=Depends(get_sheets_manager)):
    """
    Vans numbered from the configured floor upward, newest first, each with
    the latest production stage that has a date.
    """
    try:
        rows = sheets.get_production_rows()
    except SheetsFetchError as e:
        raise upstream_error("fetch production status", e)

    records = sheet_mapper.build_production_status(
        rows,
        floor=config.VAN_NUMBER_FLOOR,
        prefix=config.VAN_NUMBER_PREFIX,
    )
    return {"productionData": [r.to_dict() for r in records]}


@router.get(
    "/api/van-details",
    summary="Component and stage details for one van",
    responses={400: {"description": "vanNumber missing"}, 404: {"description": "Van not found"}},
)
def get_van_details(
    van_number: str = Query(None, alias="vanNumber"),
    sheets=Depends(get_sheets_manager),
):
    if not van_number or not van_number.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Van number is required",
        )

    try:
        rows = sheets.get_van_detail_rows()
    except SheetsFetchError as e:
        raise upstream_error("fetch van details", e)

    if len(rows) < 2:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No data found")

    record = sheet_mapper.find_van_details(
        rows, van_number.strip(), true_marker=config.VAN_DETAILS_TRUE_MARKER,
    )
    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Van not found")
    return record.to_dict()
