from typing import Optional
from fastapi import APIRouter, Depends, Query, Path, Response, status

from timeledger.api.deps import get_ledger_store
from timeledger.core.errors import NotFoundError, ValidationError
from timeledger.core.rbac import authorize
from timeledger.core.security import get_current_user
from timeledger.db.ledger_store import LedgerStore, is_valid_id
from timeledger.schemas.employee_schema import (
    EmployeeIn,
    EmployeeOut,
    EmployeeUpdate,
    EmployeeListOut,
)

router = APIRouter(prefix="/employees", tags=["employees"])


def _check_id(employee_id: str) -> str:
    if not is_valid_id(employee_id):
        raise ValidationError("Invalid ID")
    return employee_id


@router.get("", response_model=EmployeeListOut)
async def list_employees(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    q: Optional[str] = Query(None),
    store: LedgerStore = Depends(get_ledger_store),
    current_user=Depends(get_current_user),
):
    authorize(current_user, "employee:read")
    items, total = await store.list_employees(q, skip=(page - 1) * limit, limit=limit)
    return {"items": items, "total": total, "page": page, "limit": limit}


@router.get("/{employee_id}", response_model=EmployeeOut)
async def get_employee(
    employee_id: str = Path(...),
    store: LedgerStore = Depends(get_ledger_store),
    current_user=Depends(get_current_user),
):
    authorize(current_user, "employee:read")
    doc = await store.get_employee(_check_id(employee_id))
    if not doc:
        raise NotFoundError("Employee not found")
    return doc


@router.post("", response_model=EmployeeOut, status_code=status.HTTP_201_CREATED)
async def create_employee(
    payload: EmployeeIn,
    store: LedgerStore = Depends(get_ledger_store),
    current_user=Depends(get_current_user),
):
    authorize(current_user, "employee:create")
    return await store.create_employee(payload.model_dump())


@router.put("/{employee_id}", response_model=EmployeeOut)
async def update_employee(
    payload: EmployeeUpdate,
    employee_id: str = Path(...),
    store: LedgerStore = Depends(get_ledger_store),
    current_user=Depends(get_current_user),
):
    authorize(current_user, "employee:update")
    update = payload.model_dump(exclude_unset=True)
    if update.get("name", "") is None:
        raise ValidationError("Name required")
    doc = await store.update_employee(_check_id(employee_id), update)
    if not doc:
        raise NotFoundError("Employee not found")
    return doc


@router.delete("/{employee_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_employee(
    employee_id: str = Path(...),
    store: LedgerStore = Depends(get_ledger_store),
    current_user=Depends(get_current_user),
):
    authorize(current_user, "employee:delete")
    await store.delete_employee(_check_id(employee_id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)
