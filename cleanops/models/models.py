import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    String,
    DateTime,
    Boolean,
    ForeignKey,
    Integer,
    Float,
    JSON,
    UniqueConstraint,
    Text,
    Index,
)
from sqlalchemy.orm import relationship, Mapped, mapped_column

from ..db import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def uuid_pk() -> Mapped[str]:
    return mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))


class Customer(Base):
    __tablename__ = "customers"

    id: Mapped[str] = uuid_pk()
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    contact_email: Mapped[Optional[str]] = mapped_column(String(255))
    contact_phone: Mapped[Optional[str]] = mapped_column(String(50))
    address: Mapped[Optional[str]] = mapped_column(String(500))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))  # soft delete
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    areas = relationship("Area", back_populates="customer", order_by="Area.name")


class Area(Base):
    __tablename__ = "areas"

    id: Mapped[str] = uuid_pk()
    customer_id: Mapped[str] = mapped_column(String(36), ForeignKey("customers.id", ondelete="CASCADE"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(String(500))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    customer = relationship("Customer", back_populates="areas")

    __table_args__ = (
        UniqueConstraint("customer_id", "name", name="uq_area_customer_name"),
    )


class AreaTask(Base):
    """A cleaning task configured for a customer's area (drives the cleaner checklist)."""
    __tablename__ = "area_tasks"

    id: Mapped[str] = uuid_pk()
    customer_name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    area: Mapped[str] = mapped_column(String(255), nullable=False)
    task_description: Mapped[str] = mapped_column(Text, nullable=False)
    task_type: Mapped[Optional[str]] = mapped_column(String(100))
    qr_code: Mapped[Optional[str]] = mapped_column(String(255))
    active: Mapped[bool] = mapped_column(Boolean, default=True)
    sort_order: Mapped[Optional[int]] = mapped_column(Integer)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    __table_args__ = (
        Index("idx_area_tasks_customer_area", "customer_name", "area"),
    )


class Cleaner(Base):
    __tablename__ = "cleaners"

    id: Mapped[str] = uuid_pk()
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[Optional[str]] = mapped_column(String(100))
    mobile_number: Mapped[Optional[str]] = mapped_column(String(50), unique=True, index=True)
    email: Mapped[Optional[str]] = mapped_column(String(255))
    password_hash: Mapped[Optional[str]] = mapped_column(String(255))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class Manager(Base):
    __tablename__ = "managers"

    id: Mapped[str] = uuid_pk()
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[Optional[str]] = mapped_column(String(100))
    mobile_number: Mapped[Optional[str]] = mapped_column(String(50), unique=True, index=True)
    email: Mapped[Optional[str]] = mapped_column(String(255))
    password_hash: Mapped[Optional[str]] = mapped_column(String(255))
    role: Mapped[str] = mapped_column(String(20), default="manager")  # manager|ops_manager
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class Admin(Base):
    __tablename__ = "admins"

    id: Mapped[str] = uuid_pk()
    username: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    first_name: Mapped[Optional[str]] = mapped_column(String(100))
    last_name: Mapped[Optional[str]] = mapped_column(String(100))
    email: Mapped[Optional[str]] = mapped_column(String(255))
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class ManagerCleaner(Base):
    """Roster mapping: which cleaners a manager can see."""
    __tablename__ = "manager_cleaners"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    manager_id: Mapped[str] = mapped_column(String(36), ForeignKey("managers.id", ondelete="CASCADE"), nullable=False, index=True)
    cleaner_id: Mapped[str] = mapped_column(String(36), ForeignKey("cleaners.id", ondelete="CASCADE"), nullable=False)

    __table_args__ = (
        UniqueConstraint("manager_id", "cleaner_id", name="uq_manager_cleaner"),
    )


class TimeAttendance(Base):
    """Clock-in/clock-out record; clock_out stays NULL while the cleaner is on shift."""
    __tablename__ = "time_attendance"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    cleaner_id: Mapped[Optional[int]] = mapped_column(Integer, index=True)  # legacy numeric id
    cleaner_uuid: Mapped[Optional[str]] = mapped_column(String(36), index=True)
    cleaner_name: Mapped[Optional[str]] = mapped_column(String(255), index=True)
    cleaner_mobile: Mapped[Optional[str]] = mapped_column(String(50))
    customer_name: Mapped[Optional[str]] = mapped_column(String(255))
    site_name: Mapped[Optional[str]] = mapped_column(String(255))
    clock_in: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), index=True)
    clock_out: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    clock_in_qr: Mapped[Optional[str]] = mapped_column(String(255))
    notes: Mapped[Optional[str]] = mapped_column(Text)


class CleanerLog(Base):
    __tablename__ = "uk_cleaner_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    cleaner_id: Mapped[Optional[str]] = mapped_column(String(36), index=True)
    cleaner_name: Mapped[Optional[str]] = mapped_column(String(255), index=True)
    action: Mapped[str] = mapped_column(String(100), nullable=False)
    qr_code_id: Mapped[Optional[str]] = mapped_column(String(255))
    site_id: Mapped[Optional[str]] = mapped_column(String(255))
    area_id: Mapped[Optional[str]] = mapped_column(String(255))
    customer_name: Mapped[Optional[str]] = mapped_column(String(255))
    site_area: Mapped[Optional[str]] = mapped_column(String(255))
    comments: Mapped[Optional[str]] = mapped_column(Text)
    latitude: Mapped[Optional[float]] = mapped_column(Float)
    longitude: Mapped[Optional[float]] = mapped_column(Float)
    device_info: Mapped[Optional[dict]] = mapped_column(JSON)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, index=True)


class TaskSelection(Base):
    """Tasks a cleaner picked (and completed) after scanning an area QR code."""
    __tablename__ = "uk_cleaner_task_selections"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    cleaner_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    cleaner_name: Mapped[Optional[str]] = mapped_column(String(255), index=True)
    qr_code_id: Mapped[Optional[str]] = mapped_column(String(255))
    area_type: Mapped[Optional[str]] = mapped_column(String(50))
    selected_tasks: Mapped[Optional[str]] = mapped_column(Text)  # JSON-serialized list of task ids
    completed_tasks: Mapped[Optional[str]] = mapped_column(Text)  # JSON-serialized list of task ids
    timestamp: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), index=True)


class TaskPhoto(Base):
    __tablename__ = "uk_cleaner_task_photos"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    cleaner_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    cleaner_name: Mapped[Optional[str]] = mapped_column(String(255), index=True)
    qr_code_id: Mapped[Optional[str]] = mapped_column(String(255))
    task_id: Mapped[Optional[str]] = mapped_column(String(255))
    area_type: Mapped[Optional[str]] = mapped_column(String(50))
    area_name: Mapped[Optional[str]] = mapped_column(String(255))
    customer_name: Mapped[Optional[str]] = mapped_column(String(255))
    photo_data: Mapped[Optional[str]] = mapped_column(Text)  # data URL or storage URL
    photo_timestamp: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), index=True)
    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class BuildingQRCode(Base):
    __tablename__ = "building_qr_codes"

    qr_code_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    customer_name: Mapped[str] = mapped_column(String(255), nullable=False)
    building_area: Mapped[str] = mapped_column(String(255), nullable=False)
    area_description: Mapped[Optional[str]] = mapped_column(String(500))
    qr_code_url: Mapped[Optional[str]] = mapped_column(Text)  # encoded payload
    qr_code_image_path: Mapped[Optional[str]] = mapped_column(String(1000))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        UniqueConstraint("customer_name", "building_area", name="uq_qr_customer_area"),
    )


class ManagerPhotoFeedback(Base):
    __tablename__ = "manager_photo_feedback"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    manager_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    photo_id: Mapped[int] = mapped_column(Integer, ForeignKey("uk_cleaner_task_photos.id", ondelete="CASCADE"), nullable=False)
    feedback: Mapped[str] = mapped_column(String(10), nullable=False)  # up|down
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        UniqueConstraint("manager_id", "photo_id", name="uq_manager_photo_feedback"),
    )


class BathroomAssistRequest(Base):
    __tablename__ = "bathroom_assist_requests"

    id: Mapped[str] = uuid_pk()
    qr_code_id: Mapped[Optional[str]] = mapped_column(String(255))
    customer_name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    location_label: Mapped[str] = mapped_column(String(255), nullable=False)
    issue_type: Mapped[str] = mapped_column(String(100), nullable=False)
    issue_description: Mapped[Optional[str]] = mapped_column(Text)
    reported_by: Mapped[Optional[str]] = mapped_column(String(255))
    reported_contact: Mapped[Optional[str]] = mapped_column(String(255))
    status: Mapped[str] = mapped_column(String(20), default="pending", index=True)  # pending|accepted|resolved|escalated|cancelled
    reported_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, index=True)
    accepted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    accepted_by: Mapped[Optional[str]] = mapped_column(String(36))
    accepted_by_name: Mapped[Optional[str]] = mapped_column(String(255))
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    resolved_by: Mapped[Optional[str]] = mapped_column(String(36))
    resolved_by_name: Mapped[Optional[str]] = mapped_column(String(255))
    escalated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    escalation_reason: Mapped[Optional[str]] = mapped_column(Text)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    escalate_after: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), index=True)
    before_media: Mapped[Optional[list]] = mapped_column(JSON, default=list)  # [{type, url, name, size}]
    after_media: Mapped[Optional[list]] = mapped_column(JSON, default=list)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    materials_used: Mapped[Optional[str]] = mapped_column(Text)
    # "metadata" is reserved on declarative classes
    request_metadata: Mapped[Optional[dict]] = mapped_column("metadata", JSON, default=dict)

    events = relationship("BathroomAssistEvent", back_populates="request", order_by="BathroomAssistEvent.created_at")


class BathroomAssistEvent(Base):
    """Append-only audit trail for assist requests."""
    __tablename__ = "bathroom_assist_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    request_id: Mapped[str] = mapped_column(String(36), ForeignKey("bathroom_assist_requests.id", ondelete="CASCADE"), nullable=False, index=True)
    event_type: Mapped[str] = mapped_column(String(50), nullable=False)  # reported|accepted|resolved|escalated|cancelled
    actor_role: Mapped[Optional[str]] = mapped_column(String(50))  # staff|cleaner|system|admin
    actor_id: Mapped[Optional[str]] = mapped_column(String(36))
    actor_name: Mapped[Optional[str]] = mapped_column(String(255))
    payload: Mapped[Optional[dict]] = mapped_column(JSON, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    request = relationship("BathroomAssistRequest", back_populates="events")


class Message(Base):
    """Outbound notification queue consumed by the messaging worker."""
    __tablename__ = "messages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    recipient: Mapped[str] = mapped_column(String(100), nullable=False)  # cleaners|operations|customers
    type: Mapped[str] = mapped_column(String(50), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    schedule: Mapped[Optional[str]] = mapped_column(String(100))
    cleaner_id: Mapped[Optional[str]] = mapped_column(String(36))
    cleaner_name: Mapped[Optional[str]] = mapped_column(String(255))
    customer_name: Mapped[Optional[str]] = mapped_column(String(255))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        Index("idx_messages_recipient_created", "recipient", "created_at"),
    )
