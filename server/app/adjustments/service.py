from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
import logging

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.adjustments import schemas
from app.bom.diff import completed_activity_exists
from app.inventory.service import (
    STATUS_ADDED,
    STATUS_SUBTRACT,
    apply_balance_delta,
    create_inventory_transaction,
    lock_balances,
)
from app.models import BomProduct, Element, ElementType, InventoryAdjustmentLog, Project


logger = logging.getLogger(__name__)

OPERATION_ADD = "add"
OPERATION_SUBTRACT = "subtract"
ADJUSTMENT_OPERATIONS = (OPERATION_ADD, OPERATION_SUBTRACT)


class InventoryAdjustmentError(ValueError):
    code = "INVALID_ADJUSTMENT"


class ProjectNotFoundError(InventoryAdjustmentError):
    code = "PROJECT_NOT_FOUND"


class ElementTypeNotFoundError(InventoryAdjustmentError):
    code = "ELEMENT_TYPE_NOT_FOUND"


class BomItemNotFoundError(InventoryAdjustmentError):
    code = "BOM_NOT_FOUND"


class InvalidOperationError(InventoryAdjustmentError):
    code = "INVALID_OPERATION"


class InvalidQuantityError(InventoryAdjustmentError):
    code = "INVALID_QUANTITY"


class InsufficientInventoryError(InventoryAdjustmentError):
    code = "INSUFFICIENT_INVENTORY"

    def __init__(self, violations: list[dict]):
        self.violations = violations
        first = violations[0]
        super().__init__(
            f"Cannot subtract {first['requested_qty']} from BOM ID {first['bom_id']}. "
            f"Insufficient inventory (current: {first['available_qty']})."
        )


@dataclass
class PlannedLine:
    bom_id: int
    operation: str
    quantity: int
    delta: int
    reason: str


@dataclass
class AdjustmentPlan:
    project_id: int
    element_type_id: int
    element_count: int
    lines: list[PlannedLine] = field(default_factory=list)


def adjustment_reason(operation: str, bom_id: int) -> str:
    return f"{operation} operation for BOM ID {bom_id}"


def plan_inventory_adjustment(db: Session, payload: dict) -> AdjustmentPlan:
    """Validate a requested adjustment against current balances.

    Balance rows are read with ``FOR UPDATE`` so the plan stays valid for the
    transaction that applies it. Raises an ``InventoryAdjustmentError`` subclass
    for the first rule the request breaks; stock shortfalls are reported together.
    """
    project_id = payload["project_id"]
    element_type_id = payload["element_type_id"]
    lines_payload = payload.get("bom") or []

    if db.query(Project.project_id).filter(Project.project_id == project_id).scalar() is None:
        raise ProjectNotFoundError("Project does not exist")

    element_type_exists = (
        db.query(ElementType.element_type_id)
        .filter(ElementType.element_type_id == element_type_id, ElementType.project_id == project_id)
        .scalar()
    )
    if element_type_exists is None:
        raise ElementTypeNotFoundError("Element type does not exist")

    bom_ids = [line["bom_id"] for line in lines_payload]
    known_bom_ids = {
        bom_id for (bom_id,) in db.query(BomProduct.id).filter(BomProduct.id.in_(bom_ids)).all()
    } if bom_ids else set()
    for line in lines_payload:
        if line["bom_id"] not in known_bom_ids:
            raise BomItemNotFoundError(f"BOM item with ID {line['bom_id']} does not exist")
        if line["operation"] not in ADJUSTMENT_OPERATIONS:
            raise InvalidOperationError(
                f"Invalid operation '{line['operation']}' for BOM ID {line['bom_id']}. Must be 'add' or 'subtract'"
            )

    projected: dict[int, Decimal] = {}
    violations = []
    for line in lines_payload:
        bom_id = line["bom_id"]
        if bom_id not in projected:
            projected[bom_id] = sum(
                (Decimal(row.bom_qty or 0) for row in lock_balances(db, project_id, bom_id)),
                Decimal("0"),
            )
        quantity = Decimal(line["quantity"])
        if line["operation"] == OPERATION_ADD:
            projected[bom_id] += quantity
            continue
        if projected[bom_id] < quantity:
            violations.append(
                {
                    "bom_id": bom_id,
                    "requested_qty": line["quantity"],
                    "available_qty": str(projected[bom_id]),
                }
            )
            continue
        projected[bom_id] -= quantity
    if violations:
        raise InsufficientInventoryError(violations)

    for line in lines_payload:
        if line["quantity"] <= 0:
            raise InvalidQuantityError(f"Quantity for BOM ID {line['bom_id']} must be greater than zero")

    plan = AdjustmentPlan(
        project_id=project_id,
        element_type_id=element_type_id,
        element_count=payload["element_count"],
    )
    for line in lines_payload:
        sign = 1 if line["operation"] == OPERATION_ADD else -1
        plan.lines.append(
            PlannedLine(
                bom_id=line["bom_id"],
                operation=line["operation"],
                quantity=line["quantity"],
                delta=sign * line["quantity"],
                reason=adjustment_reason(line["operation"], line["bom_id"]),
            )
        )
    return plan


def mark_element_type_adjusted(db: Session, project_id: int, element_type_id: int) -> int:
    """Set the adjustment latch on the element type and its eligible elements. Returns elements latched."""
    element_type = (
        db.query(ElementType)
        .filter(ElementType.element_type_id == element_type_id, ElementType.project_id == project_id)
        .with_for_update()
        .one()
    )
    element_type.inv_adjust = True

    elements = (
        db.query(Element)
        .filter(
            Element.element_type_id == element_type_id,
            Element.instage.is_(True),
            Element.inv_adjust.is_(False),
            completed_activity_exists(db),
        )
        .with_for_update()
        .all()
    )
    for element in elements:
        element.inv_adjust = True
    db.flush()
    return len(elements)


def apply_inventory_adjustment(db: Session, plan: AdjustmentPlan, *, adjusted_by: str) -> list[InventoryAdjustmentLog]:
    """Apply a validated plan inside the caller's transaction.

    Nothing is committed here; the caller commits on success and rolls back on any
    exception, so either every line lands or none does.
    """
    adjusted_at = datetime.utcnow()
    logs: list[InventoryAdjustmentLog] = []
    for line in plan.lines:
        transaction = create_inventory_transaction(
            db,
            project_id=plan.project_id,
            bom_id=line.bom_id,
            qty=Decimal(line.quantity),
            status=STATUS_ADDED if line.delta > 0 else STATUS_SUBTRACT,
        )
        apply_balance_delta(
            db,
            project_id=plan.project_id,
            bom_id=line.bom_id,
            delta=Decimal(line.delta),
            transaction=transaction,
        )
        log = InventoryAdjustmentLog(
            element_type_id=plan.element_type_id,
            product_id=line.bom_id,
            quantity=abs(line.delta),
            reason=line.reason,
            adjusted_by=adjusted_by,
            adjusted_at=adjusted_at,
            project_id=plan.project_id,
            element_count=plan.element_count,
        )
        db.add(log)
        logs.append(log)
    db.flush()

    latched = mark_element_type_adjusted(db, plan.project_id, plan.element_type_id)
    logger.info(
        "Inventory adjustment applied: project_id=%s element_type_id=%s lines=%s elements_latched=%s by=%s",
        plan.project_id,
        plan.element_type_id,
        len(logs),
        latched,
        adjusted_by,
    )
    return logs


def create_inventory_adjustment(db: Session, payload: dict, *, adjusted_by: str) -> list[InventoryAdjustmentLog]:
    plan = plan_inventory_adjustment(db, payload)
    return apply_inventory_adjustment(db, plan, adjusted_by=adjusted_by)


def list_adjustment_logs(db: Session, project_id: int) -> list[schemas.InventoryAdjustmentLogResponse]:
    rows = (
        db.query(
            InventoryAdjustmentLog.id,
            func.coalesce(InventoryAdjustmentLog.element_type_id, 0),
            func.coalesce(InventoryAdjustmentLog.product_id, 0),
            func.coalesce(InventoryAdjustmentLog.quantity, 0),
            InventoryAdjustmentLog.reason,
            InventoryAdjustmentLog.adjusted_by,
            InventoryAdjustmentLog.adjusted_at,
            func.coalesce(InventoryAdjustmentLog.project_id, 0),
            func.coalesce(InventoryAdjustmentLog.element_count, 0),
        )
        .filter(InventoryAdjustmentLog.project_id == project_id)
        .order_by(InventoryAdjustmentLog.adjusted_at.desc(), InventoryAdjustmentLog.id.desc())
        .all()
    )
    return [
        schemas.InventoryAdjustmentLogResponse(
            id=log_id,
            element_type_id=element_type_id,
            product_id=product_id,
            quantity=quantity,
            reason=reason,
            adjusted_by=adjusted_by,
            adjusted_at=adjusted_at,
            project_id=log_project_id,
            element_count=element_count,
        )
        for (
            log_id,
            element_type_id,
            product_id,
            quantity,
            reason,
            adjusted_by,
            adjusted_at,
            log_project_id,
            element_count,
        ) in rows
    ]
