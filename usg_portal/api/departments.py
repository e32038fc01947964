"""
Department registry endpoints (admin).
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from usg_portal.api.deps import require_admin
from usg_portal.exceptions import PortalError
from usg_portal.models.base import get_db
from usg_portal.models.user import User
from usg_portal.schemas.common import ApiResponse
from usg_portal.schemas.department import (
    DepartmentCreate,
    DepartmentResponse,
    DepartmentUpdate,
)
from usg_portal.services.department_service import DepartmentService

router = APIRouter(prefix="/api/admin/departments", tags=["Departments"])


@router.get("", response_model=ApiResponse[list[DepartmentResponse]])
def list_departments(
    include_inactive: bool = False,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    departments = DepartmentService(db).get_all(include_inactive=include_inactive)
    return ApiResponse(
        data=[DepartmentResponse.model_validate(d) for d in departments]
    )


@router.get("/{department_id}", response_model=ApiResponse[DepartmentResponse])
def get_department(
    department_id: int,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    department = DepartmentService(db).get_by_id(department_id)
    return ApiResponse(data=DepartmentResponse.model_validate(department))


@router.post("", response_model=ApiResponse[DepartmentResponse], status_code=201)
def create_department(
    request: DepartmentCreate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    service = DepartmentService(db)
    try:
        department = service.create(request)
        db.commit()
    except PortalError:
        db.rollback()
        raise
    return ApiResponse(
        message="Department created successfully",
        data=DepartmentResponse.model_validate(department),
    )


@router.put("/{department_id}", response_model=ApiResponse[DepartmentResponse])
def update_department(
    department_id: int,
    request: DepartmentUpdate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    service = DepartmentService(db)
    try:
        department = service.update(department_id, request)
        db.commit()
    except PortalError:
        db.rollback()
        raise
    return ApiResponse(
        message="Department updated successfully",
        data=DepartmentResponse.model_validate(department),
    )


@router.delete("/{department_id}", response_model=ApiResponse[DepartmentResponse])
def deactivate_department(
    department_id: int,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Departments are deactivated, never removed."""
    service = DepartmentService(db)
    try:
        department = service.deactivate(department_id)
        db.commit()
    except PortalError:
        db.rollback()
        raise
    return ApiResponse(
        message="Department deactivated successfully",
        data=DepartmentResponse.model_validate(department),
    )
