"""Security groups: tenant-scoped permission sets assigned to users."""
import uuid
from datetime import datetime
from typing import List, Optional, Set

from sqlalchemy import String, Boolean, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from retailbill.core.permissions import Permission
from retailbill.database import Base
from retailbill.db_types import UUIDType, JSONType, TZDateTime, utcnow


class SecurityGroup(Base):
    __tablename__ = "security_groups"
    __table_args__ = (
        UniqueConstraint("tenant_id", "name", name="uq_security_group_tenant_name"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    permission_codes: Mapped[list] = mapped_column(
        JSONType,
        default=list,
        nullable=False,
        comment="List of Permission values granted by this group",
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False, index=True)

    created_by: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    updated_by: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    created_at: Mapped[datetime] = mapped_column(TZDateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        TZDateTime, default=utcnow, onupdate=utcnow, nullable=False
    )

    assignments: Mapped[List["UserSecurityGroup"]] = relationship(
        "UserSecurityGroup",
        back_populates="security_group",
        cascade="all, delete-orphan",
    )

    @property
    def permissions(self) -> Set[Permission]:
        return {Permission(code) for code in (self.permission_codes or [])}

    @permissions.setter
    def permissions(self, values) -> None:
        self.permission_codes = sorted({Permission(v).value for v in values})

    def has_permission(self, permission: Permission) -> bool:
        return Permission(permission).value in (self.permission_codes or [])

    def __repr__(self) -> str:
        return f"<SecurityGroup(name='{self.name}', tenant={self.tenant_id})>"


class UserSecurityGroup(Base):
    """Assignment of a user to a security group."""
    __tablename__ = "user_security_groups"
    __table_args__ = (
        UniqueConstraint("user_id", "security_group_id", name="uq_user_security_group"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    security_group_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("security_groups.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    assigned_by: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    assigned_at: Mapped[datetime] = mapped_column(TZDateTime, default=utcnow, nullable=False)

    security_group: Mapped["SecurityGroup"] = relationship(
        "SecurityGroup", back_populates="assignments"
    )

    def __repr__(self) -> str:
        return f"<UserSecurityGroup(user='{self.user_id}', group={self.security_group_id})>"
