from datetime import datetime
from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from .db import Base


INITIAL_VERSION_LABELS = ("RV-1", "VR-1", "RV-01")


class Project(Base):
    __tablename__ = "project"

    project_id = Column(Integer, primary_key=True)
    name = Column(String(200), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    element_types = relationship("ElementType", back_populates="project")


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    email = Column(String(255), unique=True, nullable=False)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=True)
    password_hash = Column(String(255), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    sessions = relationship("UserSession", back_populates="user", cascade="all, delete-orphan")

    @property
    def display_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part)


class UserSession(Base):
    __tablename__ = "session"

    session_id = Column(String(128), primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    host_name = Column(String(255), nullable=True)
    ip_address = Column(String(64), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    expires_at = Column(DateTime, nullable=True)

    user = relationship("User", back_populates="sessions")


class ElementType(Base):
    __tablename__ = "element_type"

    element_type_id = Column(Integer, primary_key=True)
    project_id = Column(Integer, ForeignKey("project.project_id"), nullable=False)
    element_type_name = Column(String(200), nullable=False)
    element_type_version = Column(String(50), nullable=False, default="RV-1")
    created_by = Column(String(200), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    update_at = Column(DateTime, nullable=True)
    inv_adjust = Column(Boolean, nullable=False, default=False)
    # Revision id the current BOM will be archived under on its next edit.
    pending_bom_revision_id = Column(Integer, nullable=True)

    project = relationship("Project", back_populates="element_types")
    elements = relationship("Element", back_populates="element_type")
    bom_lines = relationship(
        "ElementTypeBOM",
        back_populates="element_type",
        cascade="all, delete-orphan",
        order_by="ElementTypeBOM.id",
    )


class Element(Base):
    __tablename__ = "element"

    id = Column(Integer, primary_key=True)
    element_id = Column(String(100), nullable=False)
    element_type_id = Column(Integer, ForeignKey("element_type.element_type_id"), nullable=False)
    project_id = Column(Integer, ForeignKey("project.project_id"), nullable=False)
    bom_revision_id = Column(Integer, nullable=True)
    drawing_revision_id = Column(Integer, nullable=True)
    instage = Column(Boolean, nullable=False, default=False)
    inv_adjust = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    update_at = Column(DateTime, nullable=True)

    element_type = relationship("ElementType", back_populates="elements")
    activities = relationship("Activity", back_populates="element", cascade="all, delete-orphan")


class Activity(Base):
    __tablename__ = "activity"

    id = Column(Integer, primary_key=True)
    element_id = Column(Integer, ForeignKey("element.id"), nullable=False)
    project_id = Column(Integer, ForeignKey("project.project_id"), nullable=True)
    name = Column(String(200), nullable=True)
    completed = Column(Boolean, nullable=False, default=False)

    element = relationship("Element", back_populates="activities")


class BomProduct(Base):
    """Catalogue row referenced as ``bom_id`` by inventory and ``product_id`` by BOM lines."""

    __tablename__ = "inv_bom"

    id = Column(Integer, primary_key=True)
    product_name = Column(String(200), nullable=False)
    unit = Column(String(50), nullable=True)
    rate = Column(Numeric(14, 2), nullable=True)


class ElementTypeBOM(Base):
    __tablename__ = "element_type_bom"

    id = Column(Integer, primary_key=True)
    element_type_id = Column(Integer, ForeignKey("element_type.element_type_id"), nullable=False)
    project_id = Column(Integer, ForeignKey("project.project_id"), nullable=False)
    product_id = Column(Integer, ForeignKey("inv_bom.id"), nullable=False)
    product_name = Column(String(200), nullable=False)
    quantity = Column(Integer, nullable=True)
    unit = Column(String(50), nullable=True)
    rate = Column(Numeric(14, 2), nullable=True)
    updated_at = Column(DateTime, nullable=True)
    updated_by = Column(String(200), nullable=True)

    element_type = relationship("ElementType", back_populates="bom_lines")

    __table_args__ = (
        UniqueConstraint("element_type_id", "product_id", name="uq_element_type_bom_product"),
    )


class ElementTypeRevisionBOM(Base):
    __tablename__ = "element_type_revision_bom"

    id = Column(Integer, primary_key=True)
    revision_id = Column(Integer, nullable=False, index=True)
    element_type_bom_id = Column(Integer, nullable=False)
    element_type_id = Column(Integer, ForeignKey("element_type.element_type_id"), nullable=False)
    project_id = Column(Integer, ForeignKey("project.project_id"), nullable=False)
    product_id = Column(Integer, nullable=False)
    product_name = Column(String(200), nullable=False)
    quantity = Column(Integer, nullable=True)
    units = Column(String(50), nullable=True)
    rate = Column(Numeric(14, 2), nullable=True)
    changed_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    changed_by = Column(String(200), nullable=True)


class Warehouse(Base):
    __tablename__ = "warehouse"

    id = Column(Integer, primary_key=True)
    project_id = Column(Integer, ForeignKey("project.project_id"), nullable=True)
    name = Column(String(200), nullable=False)


class InventoryTrack(Base):
    __tablename__ = "inv_track"

    inv_track_id = Column(Integer, primary_key=True)
    project_id = Column(Integer, ForeignKey("project.project_id"), nullable=False)
    bom_id = Column(Integer, ForeignKey("inv_bom.id"), nullable=False)
    warehouse_id = Column(Integer, ForeignKey("warehouse.id"), nullable=True)
    bom_qty = Column(Numeric(14, 2), nullable=False, default=0)
    last_updated = Column(DateTime, default=datetime.utcnow, nullable=False)
    last_inv_transactionid = Column(Integer, nullable=True)

    product = relationship("BomProduct")

    __table_args__ = (
        UniqueConstraint("project_id", "bom_id", "warehouse_id", name="uq_inv_track_project_bom_warehouse"),
        CheckConstraint("bom_qty >= 0", name="ck_inv_track_bom_qty_non_negative"),
    )


class InventoryTransaction(Base):
    __tablename__ = "inv_transaction"

    inv_transaction_id = Column(Integer, primary_key=True)
    purchase_id = Column(Integer, nullable=True)
    warehouse_id = Column(Integer, ForeignKey("warehouse.id"), nullable=True)
    project_id = Column(Integer, ForeignKey("project.project_id"), nullable=False)
    task_id = Column(Integer, nullable=True)
    bom_id = Column(Integer, ForeignKey("inv_bom.id"), nullable=False)
    bom_qty = Column(Numeric(14, 2), nullable=False)
    status = Column(Enum("Added", "Subtract", name="inv_transaction_status"), nullable=False)
    time_date = Column(DateTime, default=datetime.utcnow, nullable=False)


class InventoryAdjustmentLog(Base):
    __tablename__ = "inv_adjustment"

    id = Column(Integer, primary_key=True)
    element_type_id = Column(Integer, ForeignKey("element_type.element_type_id"), nullable=True)
    product_id = Column(Integer, ForeignKey("inv_bom.id"), nullable=True)
    quantity = Column(Integer, nullable=False)
    reason = Column(Text, nullable=True)
    adjusted_by = Column(String(200), nullable=False)
    adjusted_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    project_id = Column(Integer, ForeignKey("project.project_id"), nullable=True)
    element_count = Column("element_caunt", Integer, nullable=True)
