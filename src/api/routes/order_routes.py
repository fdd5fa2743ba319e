"""
Upholstery order routes - submit orders, manage saved presets, read the
model and colour catalogue.
The order form posts camelCase field names; rows are stored in snake_case.
"""
from datetime import date
from typing import Any, Dict, List, Literal, Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from api.auth.dependencies import get_allowed_session, get_user_store
from api.auth.session import Session
from api.helpers import upstream_error
from catalog import get_catalog
from errors import SupabaseError
from store.order_store import OrderStore

router = APIRouter()


# ── Pydantic models ──────────────────────────────────────────────

class UpholsteryOrderBase(BaseModel):
    """Fields shared by orders and presets; each choice is limited to the form's options."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        protected_namespaces=(),  # model_type is a form field
    )

    van_number: str = Field(..., min_length=1)
    model: str = Field(..., min_length=1)
    model_type: Optional[str] = None
    order_date: date = Field(default_factory=date.today)
    brand_of_sample: str = Field(..., min_length=1)
    color_of_sample: str = Field(..., min_length=1)
    bed_head: Literal["Small", "Large"] = "Small"
    arms: Literal["Short", "Large", "Recessed Footrest", "GT arm"] = "Short"
    base: str = ""
    mag_pockets: Literal[
        "1 x Large",
        "1 x Small",
        "1 x Large + 2 small",
        "1 x Large + 3 small",
    ] = "1 x Large"
    head_bumper: Literal["true", "false"] = "true"
    other: Literal["Bunk Facia 1", "Bunk Facia 2", "Bunk Facia 3", ""] = ""
    lounge_type: Literal["Cafe", "Club", "L shape", "Straight"] = "Cafe"
    design: Literal["Essential Back", "Soft Back", "As Per Picture", "Other"] = "Essential Back"
    curtain: Literal["Yes", "No"] = "Yes"
    stitching: Literal["Contrast", "Single", "Double", "Same Colour"] = "Contrast"
    bunk_mattresses: Literal["None", "2", "3"] = "None"
    layout_id: Optional[str] = None
    layout_name: Optional[str] = None
    layout_image_url: Optional[str] = None

    def to_row(self) -> Dict[str, Any]:
        """snake_case column values, optional fields left out when unset."""
        return self.model_dump(exclude_none=True)


class UpholsteryOrderCreate(UpholsteryOrderBase):
    preset_name: Optional[str] = None


class UpholsteryPresetCreate(UpholsteryOrderBase):
    preset_name: str = Field(..., min_length=1, max_length=255)


# ── Orders ────────────────────────────────────────────────────────

@router.post(
    "/api/upholstery-orders",
    response_model=Dict[str, Any],
    status_code=status.HTTP_201_CREATED,
    summary="Submit an upholstery order",
)
def submit_order(body: UpholsteryOrderCreate, store=Depends(get_user_store)):
    """The order date is stamped with the time of submission."""
    try:
        return OrderStore(store).submit_order(body.to_row())
    except SupabaseError as e:
        raise upstream_error("submit order", e)


# ── Presets ───────────────────────────────────────────────────────

@router.get(
    "/api/upholstery-presets",
    response_model=List[Dict[str, Any]],
    summary="Saved presets, newest first",
)
def list_presets(store=Depends(get_user_store)):
    try:
        return OrderStore(store).list_presets()
    except SupabaseError as e:
        raise upstream_error("load presets", e)


@router.post(
    "/api/upholstery-presets",
    response_model=Dict[str, Any],
    status_code=status.HTTP_201_CREATED,
    summary="Save the current order as a preset",
)
def save_preset(body: UpholsteryPresetCreate,
                session: Session = Depends(get_allowed_session),
                store=Depends(get_user_store)):
    try:
        return OrderStore(store).save_preset(body.to_row(), user_id=session.user_id)
    except SupabaseError as e:
        raise upstream_error("save preset", e)


@router.delete(
    "/api/upholstery-presets/{preset_id}",
    summary="Delete a preset",
)
def delete_preset(preset_id: str, store=Depends(get_user_store)):
    try:
        data = OrderStore(store).delete_preset(preset_id)
    except SupabaseError as e:
        raise upstream_error("delete preset", e)
    return {"success": True, "data": data}


# ── Catalogue ─────────────────────────────────────────────────────

@router.get(
    "/api/catalog",
    summary="Caravan models and sample brand colours",
    dependencies=[Depends(get_allowed_session)],
)
def catalog():
    return get_catalog()
