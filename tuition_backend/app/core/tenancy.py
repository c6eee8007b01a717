"""
Tenant scoping for domain data access.

Every finance query goes through a TenantScope so rows of other centers are
invisible: they read as "not found", never as "forbidden".
"""

from dataclasses import dataclass
from typing import Optional, Type, TypeVar, List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tuition_backend.app.core.exceptions import InsufficientPermissionsError, ResourceNotFoundError
from tuition_backend.app.models.enums import UserRole

ModelT = TypeVar("ModelT")


@dataclass(frozen=True)
class CallerContext:
    """Identity of the caller, built once per request from the validated JWT."""
    user_id: Optional[int]
    username: str
    role: UserRole
    center_id: Optional[int] = None

    @classmethod
    def from_token_payload(cls, payload: dict) -> "CallerContext":
        return cls(
            user_id=payload["user_id"],
            username=payload.get("sub", ""),
            role=UserRole(payload["role"]),
            center_id=payload.get("center_id"),
        )

    def require_center(self) -> int:
        if self.center_id is None:
            raise InsufficientPermissionsError("This operation requires a center account")
        return self.center_id


class TenantScope:
    """
    Center-scoped data access.

    Usage:
        scope = TenantScope(db, ctx)
        invoice = await scope.get(Invoice, invoice_id)
        rows = await scope.list(Student, Student.is_active == True)
    """

    def __init__(self, db: AsyncSession, ctx: CallerContext):
        self.db = db
        self.ctx = ctx
        self.center_id = ctx.require_center()

    def select(self, model: Type[ModelT]):
        return select(model).where(model.center_id == self.center_id)

    async def get(self, model: Type[ModelT], obj_id: int, for_update: bool = False) -> ModelT:
        """Load one row of the caller's center, optionally with a row lock."""
        stmt = self.select(model).where(model.id == obj_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        result = await self.db.execute(stmt)
        obj = result.scalar_one_or_none()
        if obj is None:
            raise ResourceNotFoundError(model.__name__, obj_id)
        return obj

    async def list(self, model: Type[ModelT], *criteria, order_by=None) -> List[ModelT]:
        stmt = self.select(model)
        if criteria:
            stmt = stmt.where(*criteria)
        if order_by is not None:
            stmt = stmt.order_by(*order_by) if isinstance(order_by, (list, tuple)) else stmt.order_by(order_by)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    def add(self, obj: ModelT) -> ModelT:
        """Stamp the caller's center on a new row and add it to the session."""
        obj.center_id = self.center_id
        self.db.add(obj)
        return obj
