"""
Layout image routes - list, upload, rename and delete images in the
layouts storage bucket.
"""
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from api.auth.dependencies import get_user_store
from api.helpers import upstream_error
from errors import SupabaseError
from store.layout_store import LayoutStore

router = APIRouter()


class LayoutRename(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    new_name: str = Field(..., min_length=1, description="New file name, without extension")


@router.get(
    "",
    response_model=List[Dict[str, Any]],
    summary="List layout images",
)
def list_layouts(store=Depends(get_user_store)):
    try:
        return [layout.to_dict() for layout in LayoutStore(store).list_layouts()]
    except SupabaseError as e:
        raise upstream_error("list layouts", e)


@router.post(
    "",
    response_model=Dict[str, Any],
    status_code=status.HTTP_201_CREATED,
    summary="Upload a layout image",
)
async def upload_layout(file: UploadFile = File(...), store=Depends(get_user_store)):
    """Images only, up to 10MB. The stored name is random; the extension is kept."""
    layouts = LayoutStore(store)
    content = await file.read()
    try:
        layouts.validate_upload(file.content_type, len(content))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    try:
        return layouts.upload(file.filename, content, file.content_type).to_dict()
    except SupabaseError as e:
        raise upstream_error("upload layout", e)


@router.patch(
    "/{path:path}",
    response_model=Dict[str, Any],
    summary="Rename a layout image",
)
def rename_layout(path: str, body: LayoutRename, store=Depends(get_user_store)):
    try:
        return LayoutStore(store).rename(path, body.new_name).to_dict()
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except SupabaseError as e:
        raise upstream_error("rename layout", e)


@router.delete(
    "/{path:path}",
    summary="Delete a layout image",
)
def delete_layout(path: str, store=Depends(get_user_store)):
    try:
        LayoutStore(store).delete(path)
    except SupabaseError as e:
        raise upstream_error("delete layout", e)
    return {"success": True, "path": path}
