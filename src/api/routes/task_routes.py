"""
Important task routes - list open tasks, create, update, soft delete.
"""
from datetime import date
from typing import Any, Dict, List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from api.auth.dependencies import get_user_store
from api.helpers import upstream_error
from errors import SupabaseError
from store.task_store import TaskStore

router = APIRouter()

WarrantyHandler = Literal["Destiny", "Danny", "Nish"]
Assignee = Literal["Plumbers", "Ridma", "Ravi"]


# ── Pydantic models ──────────────────────────────────────────────

class TaskCreate(BaseModel):
    """New task body."""
    title: str = Field(..., min_length=1, max_length=255)
    van_number: str = Field(..., min_length=1)
    customer_name: str = Field(..., min_length=1)
    issue: str = Field(..., min_length=1)
    warranty_handled_by: WarrantyHandler
    assigned_to: Assignee
    due_date: date


class TaskUpdate(BaseModel):
    """Partial update; only the fields sent are changed."""
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    van_number: Optional[str] = None
    customer_name: Optional[str] = None
    issue: Optional[str] = None
    warranty_handled_by: Optional[WarrantyHandler] = None
    assigned_to: Optional[Assignee] = None
    due_date: Optional[date] = None
    is_completed: Optional[bool] = None


class TaskChangeResponse(BaseModel):
    success: bool
    data: List[Dict[str, Any]]


# ── Routes ────────────────────────────────────────────────────────

@router.get(
    "",
    response_model=List[Dict[str, Any]],
    summary="Open tasks, soonest due first",
)
def list_tasks(store=Depends(get_user_store)):
    try:
        return TaskStore(store).list_open()
    except SupabaseError as e:
        raise upstream_error("fetch important tasks", e)


@router.post(
    "",
    response_model=Dict[str, Any],
    summary="Create a task",
)
def create_task(body: TaskCreate, store=Depends(get_user_store)):
    """New tasks always start open (``is_completed`` false)."""
    try:
        return TaskStore(store).create(body.model_dump(mode="json"))
    except (SupabaseError, ValueError) as e:
        raise upstream_error("create important task", e)


@router.patch(
    "/{task_id}",
    response_model=TaskChangeResponse,
    summary="Update a task",
)
def update_task(task_id: str, body: TaskUpdate, store=Depends(get_user_store)):
    values = body.model_dump(mode="json", exclude_unset=True)
    if not values:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No fields to update",
        )
    try:
        data = TaskStore(store).update(task_id, values)
    except SupabaseError as e:
        raise upstream_error("update task", e)
    return {"success": True, "data": data}


@router.delete(
    "/{task_id}",
    response_model=TaskChangeResponse,
    summary="Delete a task",
)
def delete_task(task_id: str, store=Depends(get_user_store)):
    """Soft delete: the task is marked completed and drops off the open list."""
    try:
        data = TaskStore(store).soft_delete(task_id)
    except SupabaseError as e:
        raise upstream_error("delete task", e)
    return {"success": True, "data": data}
