import uuid
from datetime import datetime, date
from typing import Optional

from sqlalchemy import (
    Column,
    String,
    DateTime,
    Date,
    Boolean,
    ForeignKey,
    Table,
    Integer,
    Float,
    JSON,
    UniqueConstraint,
    Text,
    Index,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship, Mapped, mapped_column

from ..db import Base


def uuid_pk() -> Mapped[uuid.UUID]:
    return mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)


def uuid_fk(target: str, nullable: bool = True, ondelete: Optional[str] = None, index: bool = True):
    return mapped_column(UUID(as_uuid=True), ForeignKey(target, ondelete=ondelete), nullable=nullable, index=index)


# Association table for many-to-many Handover<->TaskCategory
handover_categories = Table(
    "handover_categories",
    Base.metadata,
    Column("handover_id", UUID(as_uuid=True), ForeignKey("handovers.id", ondelete="CASCADE"), primary_key=True),
    Column("category_id", UUID(as_uuid=True), ForeignKey("task_categories.id", ondelete="CASCADE"), primary_key=True),
    UniqueConstraint("handover_id", "category_id", name="uq_handover_category"),
)


# ---------- IDENTITY ----------
class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = uuid_pk()
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(20), default="STAFF", nullable=False)
    position: Mapped[str] = mapped_column(String(30), default="NURSE", nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    permission_overrides = relationship("UserPermission", back_populates="user", cascade="all, delete-orphan", foreign_keys="UserPermission.user_id")
    profile = relationship("EmployeeProfile", back_populates="user", uselist=False, cascade="all, delete-orphan")
    certifications = relationship("Certification", back_populates="user", cascade="all, delete-orphan")
    skills = relationship("UserSkill", back_populates="user", cascade="all, delete-orphan")


class UserPermission(Base):
    __tablename__ = "user_permissions"

    id: Mapped[uuid.UUID] = uuid_pk()
    user_id: Mapped[uuid.UUID] = uuid_fk("users.id", nullable=False, ondelete="CASCADE")
    permission: Mapped[str] = mapped_column(String(50), nullable=False)
    granted: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    granted_by_id: Mapped[Optional[uuid.UUID]] = uuid_fk("users.id", index=False)
    reason: Mapped[Optional[str]] = mapped_column(Text)
    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="permission_overrides", foreign_keys=[user_id])
    granted_by = relationship("User", foreign_keys=[granted_by_id])

    __table_args__ = (UniqueConstraint("user_id", "permission", name="uq_user_permission"),)


class PermissionRequest(Base):
    __tablename__ = "permission_requests"

    id: Mapped[uuid.UUID] = uuid_pk()
    user_id: Mapped[uuid.UUID] = uuid_fk("users.id", nullable=False, ondelete="CASCADE")
    permission: Mapped[str] = mapped_column(String(50), nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="PENDING", index=True)
    reviewed_by_id: Mapped[Optional[uuid.UUID]] = uuid_fk("users.id", index=False)
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    review_note: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    user = relationship("User", foreign_keys=[user_id])
    reviewed_by = relationship("User", foreign_keys=[reviewed_by_id])


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id: Mapped[uuid.UUID] = uuid_pk()
    action: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    user_id: Mapped[Optional[uuid.UUID]] = uuid_fk("users.id", ondelete="SET NULL")
    target_id: Mapped[Optional[str]] = mapped_column(String(64), index=True)
    target_type: Mapped[Optional[str]] = mapped_column(String(50), index=True)
    meta: Mapped[Optional[dict]] = mapped_column("metadata", JSON)
    ip: Mapped[Optional[str]] = mapped_column(String(64))
    user_agent: Mapped[Optional[str]] = mapped_column(String(500))
    integrity_hash: Mapped[Optional[str]] = mapped_column(String(64))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)

    user = relationship("User")


class Notification(Base):
    __tablename__ = "notifications"

    id: Mapped[uuid.UUID] = uuid_pk()
    user_id: Mapped[uuid.UUID] = uuid_fk("users.id", nullable=False, ondelete="CASCADE")
    type: Mapped[str] = mapped_column(String(50), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    meta: Mapped[Optional[dict]] = mapped_column("metadata", JSON)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)


# ---------- HANDOVER ----------
class Handover(Base):
    __tablename__ = "handovers"

    id: Mapped[uuid.UUID] = uuid_pk()
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    content: Mapped[str] = mapped_column(Text, default="")
    status: Mapped[str] = mapped_column(String(20), default="PENDING", index=True)
    priority: Mapped[str] = mapped_column(String(20), default="MEDIUM", index=True)
    created_by_id: Mapped[uuid.UUID] = uuid_fk("users.id", nullable=False)
    assignee_id: Mapped[Optional[uuid.UUID]] = uuid_fk("users.id")
    shift_id: Mapped[Optional[uuid.UUID]] = uuid_fk("shifts.id", ondelete="SET NULL")
    due_date: Mapped[Optional[datetime]] = mapped_column(DateTime)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, index=True)
    blocked_reason: Mapped[Optional[str]] = mapped_column(Text)
    estimated_hours: Mapped[Optional[float]] = mapped_column(Float)
    actual_hours: Mapped[Optional[float]] = mapped_column(Float)
    parent_id: Mapped[Optional[uuid.UUID]] = uuid_fk("handovers.id", ondelete="CASCADE")
    related_incident_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True))
    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    created_by = relationship("User", foreign_keys=[created_by_id])
    assignee = relationship("User", foreign_keys=[assignee_id])
    parent = relationship("Handover", remote_side=[id], back_populates="subtasks")
    subtasks = relationship("Handover", back_populates="parent", cascade="all, delete-orphan")
    comments = relationship("HandoverComment", back_populates="handover", cascade="all, delete-orphan", order_by="HandoverComment.created_at")
    categories = relationship("TaskCategory", secondary=handover_categories)
    collaborators = relationship("TaskCollaborator", back_populates="handover", cascade="all, delete-orphan")
    checklists = relationship("TaskChecklist", back_populates="handover", cascade="all, delete-orphan", order_by="TaskChecklist.sort_order")


class HandoverComment(Base):
    __tablename__ = "handover_comments"

    id: Mapped[uuid.UUID] = uuid_pk()
    handover_id: Mapped[uuid.UUID] = uuid_fk("handovers.id", nullable=False, ondelete="CASCADE")
    author_id: Mapped[uuid.UUID] = uuid_fk("users.id", nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    handover = relationship("Handover", back_populates="comments")
    author = relationship("User")


class TaskCategory(Base):
    __tablename__ = "task_categories"

    id: Mapped[uuid.UUID] = uuid_pk()
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    color: Mapped[str] = mapped_column(String(20), default="#3B82F6")
    description: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class TaskCollaborator(Base):
    __tablename__ = "task_collaborators"

    id: Mapped[uuid.UUID] = uuid_pk()
    handover_id: Mapped[uuid.UUID] = uuid_fk("handovers.id", nullable=False, ondelete="CASCADE")
    user_id: Mapped[uuid.UUID] = uuid_fk("users.id", nullable=False, ondelete="CASCADE")
    role: Mapped[str] = mapped_column(String(20), default="COLLABORATOR")
    added_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    handover = relationship("Handover", back_populates="collaborators")
    user = relationship("User")

    __table_args__ = (UniqueConstraint("handover_id", "user_id", name="uq_task_collaborator"),)


class TaskChecklist(Base):
    __tablename__ = "task_checklists"

    id: Mapped[uuid.UUID] = uuid_pk()
    handover_id: Mapped[uuid.UUID] = uuid_fk("handovers.id", nullable=False, ondelete="CASCADE")
    content: Mapped[str] = mapped_column(String(500), nullable=False)
    is_completed: Mapped[bool] = mapped_column(Boolean, default=False)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    sort_order: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    handover = relationship("Handover", back_populates="checklists")


class HandoverArchive(Base):
    __tablename__ = "handover_archives"

    id: Mapped[uuid.UUID] = uuid_pk()
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    count: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    items = relationship("ArchivedHandover", back_populates="archive", cascade="all, delete-orphan")

    __table_args__ = (UniqueConstraint("year", "month", name="uq_handover_archive_period"),)


class ArchivedHandover(Base):
    __tablename__ = "archived_handovers"

    id: Mapped[uuid.UUID] = uuid_pk()
    archive_id: Mapped[uuid.UUID] = uuid_fk("handover_archives.id", nullable=False, ondelete="CASCADE")
    original_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    content: Mapped[str] = mapped_column(Text, default="")
    status: Mapped[str] = mapped_column(String(20))
    priority: Mapped[str] = mapped_column(String(20))
    created_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True))
    assignee_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True))
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    original_created_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    snapshot: Mapped[Optional[dict]] = mapped_column(JSON)
    archived_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    archive = relationship("HandoverArchive", back_populates="items")


# ---------- INVENTORY ----------
class InventoryItem(Base):
    __tablename__ = "inventory_items"

    id: Mapped[uuid.UUID] = uuid_pk()
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    sku: Mapped[Optional[str]] = mapped_column(String(100))
    description: Mapped[Optional[str]] = mapped_column(Text)
    category: Mapped[str] = mapped_column(String(50), default="OTHER")
    unit: Mapped[str] = mapped_column(String(20), default="個")
    quantity: Mapped[int] = mapped_column(Integer, default=0)
    min_stock: Mapped[int] = mapped_column(Integer, default=0)
    max_stock: Mapped[Optional[int]] = mapped_column(Integer)
    location: Mapped[Optional[str]] = mapped_column(String(255))
    expiry_date: Mapped[Optional[date]] = mapped_column(Date)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    vendor_id: Mapped[Optional[uuid.UUID]] = uuid_fk("vendors.id", ondelete="SET NULL")
    unit_price: Mapped[Optional[float]] = mapped_column(Float)
    lead_time_days: Mapped[Optional[int]] = mapped_column(Integer)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    transactions = relationship("InventoryTxn", back_populates="item", cascade="all, delete-orphan")


class InventoryTxn(Base):
    __tablename__ = "inventory_txns"

    id: Mapped[uuid.UUID] = uuid_pk()
    item_id: Mapped[uuid.UUID] = uuid_fk("inventory_items.id", nullable=False, ondelete="CASCADE")
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    note: Mapped[Optional[str]] = mapped_column(Text)
    performed_by_id: Mapped[Optional[uuid.UUID]] = uuid_fk("users.id")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)

    item = relationship("InventoryItem", back_populates="transactions")
    performed_by = relationship("User")


# ---------- SCHEDULING ----------
class Shift(Base):
    __tablename__ = "shifts"

    id: Mapped[uuid.UUID] = uuid_pk()
    date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    user_id: Mapped[uuid.UUID] = uuid_fk("users.id", nullable=False, ondelete="CASCADE")
    notes: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    user = relationship("User")
    handovers = relationship("Handover")

    __table_args__ = (UniqueConstraint("date", "type", "user_id", name="uq_shift_slot"),)


class ScheduleEntry(Base):
    __tablename__ = "schedule_entries"

    id: Mapped[uuid.UUID] = uuid_pk()
    date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    department: Mapped[str] = mapped_column(String(30), nullable=False)
    user_id: Mapped[uuid.UUID] = uuid_fk("users.id", nullable=False, ondelete="CASCADE")
    shift_code: Mapped[Optional[str]] = mapped_column(String(5))
    period_a: Mapped[Optional[str]] = mapped_column(String(20))
    period_b: Mapped[Optional[str]] = mapped_column(String(20))
    period_c: Mapped[Optional[str]] = mapped_column(String(20))
    notes: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User")

    __table_args__ = (
        UniqueConstraint("date", "user_id", "department", name="uq_schedule_entry"),
        Index("ix_schedule_entries_department_date", "department", "date"),
    )


# ---------- HR ----------
class EmployeeProfile(Base):
    __tablename__ = "employee_profiles"

    id: Mapped[uuid.UUID] = uuid_pk()
    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    department: Mapped[Optional[str]] = mapped_column(String(100))
    title: Mapped[Optional[str]] = mapped_column(String(100))
    employee_no: Mapped[Optional[str]] = mapped_column(String(50))
    hire_date: Mapped[Optional[date]] = mapped_column(Date)
    phone: Mapped[Optional[str]] = mapped_column(String(50))
    emergency_contact: Mapped[Optional[str]] = mapped_column(String(100))
    emergency_phone: Mapped[Optional[str]] = mapped_column(String(50))
    address: Mapped[Optional[str]] = mapped_column(String(500))
    notes: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="profile")


class Certification(Base):
    __tablename__ = "certifications"

    id: Mapped[uuid.UUID] = uuid_pk()
    user_id: Mapped[uuid.UUID] = uuid_fk("users.id", nullable=False, ondelete="CASCADE")
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    issuer: Mapped[Optional[str]] = mapped_column(String(255))
    cert_no: Mapped[Optional[str]] = mapped_column(String(100))
    issue_date: Mapped[Optional[date]] = mapped_column(Date)
    expiry_date: Mapped[Optional[date]] = mapped_column(Date, index=True)
    status: Mapped[str] = mapped_column(String(20), default="VALID")
    notes: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    user = relationship("User", back_populates="certifications")


class SkillDefinition(Base):
    __tablename__ = "skill_definitions"

    id: Mapped[uuid.UUID] = uuid_pk()
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    category: Mapped[Optional[str]] = mapped_column(String(100))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class UserSkill(Base):
    __tablename__ = "user_skills"

    id: Mapped[uuid.UUID] = uuid_pk()
    user_id: Mapped[uuid.UUID] = uuid_fk("users.id", nullable=False, ondelete="CASCADE")
    skill_id: Mapped[uuid.UUID] = uuid_fk("skill_definitions.id", nullable=False, ondelete="CASCADE")
    level: Mapped[str] = mapped_column(String(20), default="BASIC")
    certified_at: Mapped[Optional[date]] = mapped_column(Date)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    user = relationship("User", back_populates="skills")
    skill = relationship("SkillDefinition")

    __table_args__ = (UniqueConstraint("user_id", "skill_id", name="uq_user_skill"),)


class LeaveRequest(Base):
    __tablename__ = "leave_requests"

    id: Mapped[uuid.UUID] = uuid_pk()
    user_id: Mapped[uuid.UUID] = uuid_fk("users.id", nullable=False, ondelete="CASCADE")
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    days: Mapped[float] = mapped_column(Float, default=1)
    reason: Mapped[Optional[str]] = mapped_column(Text)
    cover_user_id: Mapped[Optional[uuid.UUID]] = uuid_fk("users.id", ondelete="SET NULL", index=False)
    status: Mapped[str] = mapped_column(String(20), default="PENDING", index=True)
    approved_by_id: Mapped[Optional[uuid.UUID]] = uuid_fk("users.id", index=False)
    approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    review_note: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    user = relationship("User", foreign_keys=[user_id])
    approved_by = relationship("User", foreign_keys=[approved_by_id])
    cover_user = relationship("User", foreign_keys=[cover_user_id])


# ---------- ASSETS ----------
class Asset(Base):
    __tablename__ = "assets"

    id: Mapped[uuid.UUID] = uuid_pk()
    asset_no: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[Optional[str]] = mapped_column(String(100))
    brand: Mapped[Optional[str]] = mapped_column(String(100))
    model: Mapped[Optional[str]] = mapped_column(String(100))
    serial_no: Mapped[Optional[str]] = mapped_column(String(100))
    location: Mapped[Optional[str]] = mapped_column(String(255))
    department: Mapped[Optional[str]] = mapped_column(String(100))
    status: Mapped[str] = mapped_column(String(20), default="IN_USE")
    condition: Mapped[str] = mapped_column(String(20), default="GOOD")
    purchase_date: Mapped[Optional[date]] = mapped_column(Date)
    purchase_price: Mapped[Optional[float]] = mapped_column(Float)
    warranty_expiry: Mapped[Optional[date]] = mapped_column(Date)
    vendor_id: Mapped[Optional[uuid.UUID]] = uuid_fk("vendors.id", ondelete="SET NULL")
    notes: Mapped[Optional[str]] = mapped_column(Text)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    vendor = relationship("Vendor")
    schedules = relationship("MaintenanceSchedule", back_populates="asset", cascade="all, delete-orphan")
    records = relationship("MaintenanceRecord", back_populates="asset", cascade="all, delete-orphan", order_by="MaintenanceRecord.performed_at.desc()")
    faults = relationship("FaultReport", back_populates="asset", cascade="all, delete-orphan", order_by="FaultReport.created_at.desc()")


class MaintenanceSchedule(Base):
    __tablename__ = "maintenance_schedules"

    id: Mapped[uuid.UUID] = uuid_pk()
    asset_id: Mapped[uuid.UUID] = uuid_fk("assets.id", nullable=False, ondelete="CASCADE")
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    frequency: Mapped[str] = mapped_column(String(20), nullable=False)
    frequency_days: Mapped[int] = mapped_column(Integer, nullable=False)
    last_done_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    next_due_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    assignee_id: Mapped[Optional[uuid.UUID]] = uuid_fk("users.id")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    asset = relationship("Asset", back_populates="schedules")
    assignee = relationship("User")


class MaintenanceRecord(Base):
    __tablename__ = "maintenance_records"

    id: Mapped[uuid.UUID] = uuid_pk()
    asset_id: Mapped[uuid.UUID] = uuid_fk("assets.id", nullable=False, ondelete="CASCADE")
    schedule_id: Mapped[Optional[uuid.UUID]] = uuid_fk("maintenance_schedules.id", ondelete="SET NULL")
    type: Mapped[str] = mapped_column(String(20), default="SCHEDULED")
    description: Mapped[str] = mapped_column(Text, default="")
    performed_by_id: Mapped[Optional[uuid.UUID]] = uuid_fk("users.id")
    performed_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    cost: Mapped[Optional[float]] = mapped_column(Float)
    notes: Mapped[Optional[str]] = mapped_column(Text)

    asset = relationship("Asset", back_populates="records")
    performed_by = relationship("User")


class FaultReport(Base):
    __tablename__ = "fault_reports"

    id: Mapped[uuid.UUID] = uuid_pk()
    asset_id: Mapped[uuid.UUID] = uuid_fk("assets.id", nullable=False, ondelete="CASCADE")
    reporter_id: Mapped[uuid.UUID] = uuid_fk("users.id", nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    severity: Mapped[str] = mapped_column(String(20), default="MEDIUM")
    status: Mapped[str] = mapped_column(String(20), default="REPORTED", index=True)
    resolution: Mapped[Optional[str]] = mapped_column(Text)
    resolved_by_id: Mapped[Optional[uuid.UUID]] = uuid_fk("users.id", index=False)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    asset = relationship("Asset", back_populates="faults")
    reporter = relationship("User", foreign_keys=[reporter_id])
    resolved_by = relationship("User", foreign_keys=[resolved_by_id])


# ---------- PROCUREMENT ----------
class Vendor(Base):
    __tablename__ = "vendors"

    id: Mapped[uuid.UUID] = uuid_pk()
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    code: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    contact_name: Mapped[Optional[str]] = mapped_column(String(100))
    phone: Mapped[Optional[str]] = mapped_column(String(50))
    email: Mapped[Optional[str]] = mapped_column(String(255))
    address: Mapped[Optional[str]] = mapped_column(String(500))
    tax_id: Mapped[Optional[str]] = mapped_column(String(50))
    payment_terms: Mapped[Optional[str]] = mapped_column(String(100))
    rating: Mapped[Optional[int]] = mapped_column(Integer)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class PurchaseRequest(Base):
    __tablename__ = "purchase_requests"

    id: Mapped[uuid.UUID] = uuid_pk()
    request_no: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    requester_id: Mapped[uuid.UUID] = uuid_fk("users.id", nullable=False)
    department: Mapped[Optional[str]] = mapped_column(String(100))
    reason: Mapped[Optional[str]] = mapped_column(Text)
    priority: Mapped[str] = mapped_column(String(20), default="MEDIUM")
    status: Mapped[str] = mapped_column(String(20), default="PENDING", index=True)
    total_amount: Mapped[float] = mapped_column(Float, default=0)
    approved_by_id: Mapped[Optional[uuid.UUID]] = uuid_fk("users.id", index=False)
    approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    review_note: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    requester = relationship("User", foreign_keys=[requester_id])
    approved_by = relationship("User", foreign_keys=[approved_by_id])
    items = relationship("PurchaseRequestItem", back_populates="request", cascade="all, delete-orphan")


class PurchaseRequestItem(Base):
    __tablename__ = "purchase_request_items"

    id: Mapped[uuid.UUID] = uuid_pk()
    request_id: Mapped[uuid.UUID] = uuid_fk("purchase_requests.id", nullable=False, ondelete="CASCADE")
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit: Mapped[str] = mapped_column(String(20), default="個")
    estimated_price: Mapped[float] = mapped_column(Float, default=0)
    inventory_item_id: Mapped[Optional[uuid.UUID]] = uuid_fk("inventory_items.id", ondelete="SET NULL")
    notes: Mapped[Optional[str]] = mapped_column(Text)

    request = relationship("PurchaseRequest", back_populates="items")


class PurchaseOrder(Base):
    __tablename__ = "purchase_orders"

    id: Mapped[uuid.UUID] = uuid_pk()
    order_no: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    vendor_id: Mapped[uuid.UUID] = uuid_fk("vendors.id", nullable=False)
    request_id: Mapped[Optional[uuid.UUID]] = uuid_fk("purchase_requests.id", ondelete="SET NULL")
    status: Mapped[str] = mapped_column(String(20), default="PENDING", index=True)
    total_amount: Mapped[float] = mapped_column(Float, default=0)
    expected_date: Mapped[Optional[date]] = mapped_column(Date)
    created_by_id: Mapped[uuid.UUID] = uuid_fk("users.id", nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    vendor = relationship("Vendor")
    request = relationship("PurchaseRequest")
    created_by = relationship("User")
    items = relationship("PurchaseOrderItem", back_populates="order", cascade="all, delete-orphan")
    receipts = relationship("GoodsReceipt", back_populates="order", cascade="all, delete-orphan")


class PurchaseOrderItem(Base):
    __tablename__ = "purchase_order_items"

    id: Mapped[uuid.UUID] = uuid_pk()
    order_id: Mapped[uuid.UUID] = uuid_fk("purchase_orders.id", nullable=False, ondelete="CASCADE")
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit: Mapped[str] = mapped_column(String(20), default="個")
    unit_price: Mapped[float] = mapped_column(Float, default=0)
    total_price: Mapped[float] = mapped_column(Float, default=0)
    received_qty: Mapped[int] = mapped_column(Integer, default=0)
    inventory_item_id: Mapped[Optional[uuid.UUID]] = uuid_fk("inventory_items.id", ondelete="SET NULL")

    order = relationship("PurchaseOrder", back_populates="items")


class GoodsReceipt(Base):
    __tablename__ = "goods_receipts"

    id: Mapped[uuid.UUID] = uuid_pk()
    receipt_no: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    order_id: Mapped[uuid.UUID] = uuid_fk("purchase_orders.id", nullable=False, ondelete="CASCADE")
    received_by_id: Mapped[uuid.UUID] = uuid_fk("users.id", nullable=False)
    received_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    notes: Mapped[Optional[str]] = mapped_column(Text)

    order = relationship("PurchaseOrder", back_populates="receipts")
    received_by = relationship("User")
    items = relationship("GoodsReceiptItem", back_populates="receipt", cascade="all, delete-orphan")


class GoodsReceiptItem(Base):
    __tablename__ = "goods_receipt_items"

    id: Mapped[uuid.UUID] = uuid_pk()
    receipt_id: Mapped[uuid.UUID] = uuid_fk("goods_receipts.id", nullable=False, ondelete="CASCADE")
    order_item_id: Mapped[uuid.UUID] = uuid_fk("purchase_order_items.id", nullable=False, ondelete="CASCADE")
    received_qty: Mapped[int] = mapped_column(Integer, nullable=False)
    accepted_qty: Mapped[int] = mapped_column(Integer, default=0)
    rejected_qty: Mapped[int] = mapped_column(Integer, default=0)
    notes: Mapped[Optional[str]] = mapped_column(Text)

    receipt = relationship("GoodsReceipt", back_populates="items")
    order_item = relationship("PurchaseOrderItem")


# ---------- QUALITY ----------
class IncidentType(Base):
    __tablename__ = "incident_types"

    id: Mapped[uuid.UUID] = uuid_pk()
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    default_severity: Mapped[str] = mapped_column(String(20), default="MEDIUM")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class Incident(Base):
    __tablename__ = "incidents"

    id: Mapped[uuid.UUID] = uuid_pk()
    incident_no: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    type_id: Mapped[Optional[uuid.UUID]] = uuid_fk("incident_types.id", ondelete="SET NULL")
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    occurred_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    location: Mapped[Optional[str]] = mapped_column(String(255))
    severity: Mapped[str] = mapped_column(String(20), default="MEDIUM")
    status: Mapped[str] = mapped_column(String(20), default="REPORTED", index=True)
    is_near_miss: Mapped[bool] = mapped_column(Boolean, default=False)
    reporter_id: Mapped[uuid.UUID] = uuid_fk("users.id", nullable=False)
    handler_id: Mapped[Optional[uuid.UUID]] = uuid_fk("users.id")
    root_cause: Mapped[Optional[str]] = mapped_column(Text)
    corrective_action: Mapped[Optional[str]] = mapped_column(Text)
    task_id: Mapped[Optional[uuid.UUID]] = uuid_fk("handovers.id", ondelete="SET NULL")
    closed_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    type = relationship("IncidentType")
    reporter = relationship("User", foreign_keys=[reporter_id])
    handler = relationship("User", foreign_keys=[handler_id])
    follow_ups = relationship("IncidentFollowUp", back_populates="incident", cascade="all, delete-orphan", order_by="IncidentFollowUp.created_at")


class IncidentFollowUp(Base):
    __tablename__ = "incident_follow_ups"

    id: Mapped[uuid.UUID] = uuid_pk()
    incident_id: Mapped[uuid.UUID] = uuid_fk("incidents.id", nullable=False, ondelete="CASCADE")
    author_id: Mapped[uuid.UUID] = uuid_fk("users.id", nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    action_taken: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    incident = relationship("Incident", back_populates="follow_ups")
    author = relationship("User")


class Complaint(Base):
    __tablename__ = "complaints"

    id: Mapped[uuid.UUID] = uuid_pk()
    complaint_no: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    source: Mapped[str] = mapped_column(String(20), default="PATIENT")
    complainant_name: Mapped[Optional[str]] = mapped_column(String(100))
    contact: Mapped[Optional[str]] = mapped_column(String(255))
    subject: Mapped[str] = mapped_column(String(255), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="RECEIVED", index=True)
    handler_id: Mapped[Optional[uuid.UUID]] = uuid_fk("users.id")
    resolution: Mapped[Optional[str]] = mapped_column(Text)
    created_by_id: Mapped[uuid.UUID] = uuid_fk("users.id", nullable=False)
    closed_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)

    handler = relationship("User", foreign_keys=[handler_id])
    created_by = relationship("User", foreign_keys=[created_by_id])


# ---------- DOCUMENTS ----------
class DocumentCategory(Base):
    __tablename__ = "document_categories"

    id: Mapped[uuid.UUID] = uuid_pk()
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    parent_id: Mapped[Optional[uuid.UUID]] = uuid_fk("document_categories.id", ondelete="SET NULL")
    sort_order: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class Document(Base):
    __tablename__ = "documents"

    id: Mapped[uuid.UUID] = uuid_pk()
    doc_no: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    content: Mapped[str] = mapped_column(Text, default="")
    category_id: Mapped[Optional[uuid.UUID]] = uuid_fk("document_categories.id", ondelete="SET NULL")
    status: Mapped[str] = mapped_column(String(20), default="DRAFT", index=True)
    version: Mapped[int] = mapped_column(Integer, default=1)
    author_id: Mapped[uuid.UUID] = uuid_fk("users.id", nullable=False)
    published_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    category = relationship("DocumentCategory")
    author = relationship("User")
    versions = relationship("DocumentVersion", back_populates="document", cascade="all, delete-orphan", order_by="DocumentVersion.version.desc()")


class DocumentVersion(Base):
    __tablename__ = "document_versions"

    id: Mapped[uuid.UUID] = uuid_pk()
    document_id: Mapped[uuid.UUID] = uuid_fk("documents.id", nullable=False, ondelete="CASCADE")
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    content: Mapped[str] = mapped_column(Text, default="")
    created_by_id: Mapped[uuid.UUID] = uuid_fk("users.id", nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    document = relationship("Document", back_populates="versions")


class DocumentReadConfirmation(Base):
    __tablename__ = "document_read_confirmations"

    id: Mapped[uuid.UUID] = uuid_pk()
    document_id: Mapped[uuid.UUID] = uuid_fk("documents.id", nullable=False, ondelete="CASCADE")
    user_id: Mapped[uuid.UUID] = uuid_fk("users.id", nullable=False, ondelete="CASCADE")
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    confirmed_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    user = relationship("User")

    __table_args__ = (UniqueConstraint("document_id", "user_id", "version", name="uq_document_read"),)


class Announcement(Base):
    __tablename__ = "announcements"

    id: Mapped[uuid.UUID] = uuid_pk()
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    priority: Mapped[str] = mapped_column(String(20), default="NORMAL")
    is_pinned: Mapped[bool] = mapped_column(Boolean, default=False)
    publish_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    expire_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    target_roles: Mapped[Optional[list]] = mapped_column(JSON)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    author_id: Mapped[uuid.UUID] = uuid_fk("users.id", nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    author = relationship("User")


class AnnouncementRead(Base):
    __tablename__ = "announcement_reads"

    id: Mapped[uuid.UUID] = uuid_pk()
    announcement_id: Mapped[uuid.UUID] = uuid_fk("announcements.id", nullable=False, ondelete="CASCADE")
    user_id: Mapped[uuid.UUID] = uuid_fk("users.id", nullable=False, ondelete="CASCADE")
    read_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    __table_args__ = (UniqueConstraint("announcement_id", "user_id", name="uq_announcement_read"),)


# ---------- FINANCE ----------
class CostCategory(Base):
    __tablename__ = "cost_categories"

    id: Mapped[uuid.UUID] = uuid_pk()
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class CostEntry(Base):
    __tablename__ = "cost_entries"

    id: Mapped[uuid.UUID] = uuid_pk()
    category_id: Mapped[uuid.UUID] = uuid_fk("cost_categories.id", nullable=False)
    amount: Mapped[float] = mapped_column(Float, nullable=False)
    description: Mapped[str] = mapped_column(Text, default="")
    date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    reference: Mapped[Optional[str]] = mapped_column(String(100))
    created_by_id: Mapped[uuid.UUID] = uuid_fk("users.id", nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    category = relationship("CostCategory")
    created_by = relationship("User")


class RevenueEntry(Base):
    __tablename__ = "revenue_entries"

    id: Mapped[uuid.UUID] = uuid_pk()
    amount: Mapped[float] = mapped_column(Float, nullable=False)
    source: Mapped[str] = mapped_column(String(100), default="其他")
    doctor_id: Mapped[Optional[uuid.UUID]] = uuid_fk("users.id")
    description: Mapped[str] = mapped_column(Text, default="")
    date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    created_by_id: Mapped[uuid.UUID] = uuid_fk("users.id", nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    doctor = relationship("User", foreign_keys=[doctor_id])
    created_by = relationship("User", foreign_keys=[created_by_id])


class CostSnapshot(Base):
    __tablename__ = "cost_snapshots"

    id: Mapped[uuid.UUID] = uuid_pk()
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    total_revenue: Mapped[float] = mapped_column(Float, default=0)
    total_cost: Mapped[float] = mapped_column(Float, default=0)
    fixed_cost: Mapped[float] = mapped_column(Float, default=0)
    variable_cost: Mapped[float] = mapped_column(Float, default=0)
    gross_margin: Mapped[float] = mapped_column(Float, default=0)
    margin_rate: Mapped[float] = mapped_column(Float, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (UniqueConstraint("year", "month", name="uq_cost_snapshot_period"),)
