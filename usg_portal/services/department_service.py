"""
Department service: the registry issuances are routed against.

validate_department() is the single gate every department
assignment goes through: it resolves an id or a name to an
active Department and returns it so callers store the
canonical name.
"""

import logging

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from usg_portal.exceptions import ConflictError, NotFoundError, ValidationError
from usg_portal.models.department import Department
from usg_portal.models.user import User
from usg_portal.schemas.department import DepartmentCreate, DepartmentUpdate

logger = logging.getLogger(__name__)


class DepartmentService:

    def __init__(self, db: Session):
        self.db = db

    def get_all(self, include_inactive: bool = False) -> list[Department]:
        """List departments sorted by name."""
        stmt = select(Department).order_by(Department.name)
        if not include_inactive:
            stmt = stmt.where(Department.is_active.is_(True))
        return list(self.db.execute(stmt).scalars().all())

    def get_by_id(self, department_id: int) -> Department:
        department = self.db.get(Department, department_id)
        if not department:
            raise NotFoundError("Department", department_id)
        return department

    def get_by_name(self, name: str) -> Department | None:
        """Case-insensitive exact name match."""
        return self.db.execute(
            select(Department).where(
                func.lower(Department.name) == name.strip().lower()
            )
        ).scalar_one_or_none()

    def validate_department(self, identifier: str | int) -> Department:
        """
        Resolve an identifier to an active department.

        All-digit identifiers are tried as an id first, then as a
        name. Raises ValidationError when nothing matches or the
        department is inactive.
        """
        identifier = str(identifier).strip()

        department = None
        if identifier.isdigit():
            department = self.db.get(Department, int(identifier))
        if department is None:
            department = self.get_by_name(identifier)

        if department is None:
            raise ValidationError(
                f'Department "{identifier}" not found',
                code="INVALID_DEPARTMENT",
            )
        if not department.is_active:
            raise ValidationError(
                f'Department "{department.name}" is inactive',
                code="INACTIVE_DEPARTMENT",
            )
        return department

    def create(self, request: DepartmentCreate) -> Department:
        """Create a department. Name and code must be unique."""
        self._check_unique(request.name, request.code)
        if request.head_id is not None:
            self._check_head(request.head_id)

        department = Department(
            name=request.name,
            code=request.code,
            description=request.description,
            head_id=request.head_id,
        )
        self.db.add(department)
        self.db.flush()

        logger.info("Created department %s (%s)", department.id, department.code)
        return department

    def update(self, department_id: int, request: DepartmentUpdate) -> Department:
        department = self.get_by_id(department_id)
        data = request.model_dump(exclude_unset=True)

        self._check_unique(
            data.get("name"), data.get("code"), exclude_id=department.id
        )
        if data.get("head_id") is not None:
            self._check_head(data["head_id"])

        for field, value in data.items():
            if field in ("name", "code", "is_active") and value is None:
                continue
            setattr(department, field, value)

        self.db.flush()
        logger.info("Updated department %s", department.id)
        return department

    def deactivate(self, department_id: int) -> Department:
        """Soft delete. Existing issuances keep the department name."""
        department = self.get_by_id(department_id)
        department.is_active = False
        self.db.flush()

        logger.info("Deactivated department %s", department.id)
        return department

    def _check_unique(
        self,
        name: str | None,
        code: str | None,
        exclude_id: int | None = None,
    ) -> None:
        clauses = []
        if name:
            clauses.append(func.lower(Department.name) == name.lower())
        if code:
            clauses.append(Department.code == code.upper())
        if not clauses:
            return

        stmt = select(Department).where(or_(*clauses))
        if exclude_id is not None:
            stmt = stmt.where(Department.id != exclude_id)

        if self.db.execute(stmt).first():
            raise ConflictError(
                "Department with this name or code already exists",
                code="DUPLICATE_DEPARTMENT",
            )

    def _check_head(self, user_id: int) -> None:
        if not self.db.get(User, user_id):
            raise NotFoundError("User", user_id)
