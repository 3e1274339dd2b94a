from datetime import datetime
from decimal import Decimal
import logging

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.models import BomProduct, InventoryTrack, InventoryTransaction
from app.utils import quantize_qty


logger = logging.getLogger(__name__)

STATUS_ADDED = "Added"
STATUS_SUBTRACT = "Subtract"


class NegativeBalanceError(RuntimeError):
    """Raised when applying a delta would leave an inventory balance below zero."""

    def __init__(self, project_id: int, bom_id: int, on_hand: Decimal, delta: Decimal):
        self.project_id = project_id
        self.bom_id = bom_id
        self.on_hand = on_hand
        self.delta = delta
        super().__init__(
            f"Balance for BOM ID {bom_id} in project {project_id} would become negative "
            f"(on hand {on_hand}, delta {delta})."
        )


def get_on_hand_qty(db: Session, project_id: int, bom_id: int) -> Decimal:
    """On-hand quantity for one product in a project, summed across warehouses."""
    on_hand = (
        db.query(func.coalesce(func.sum(InventoryTrack.bom_qty), 0))
        .filter(InventoryTrack.project_id == project_id, InventoryTrack.bom_id == bom_id)
        .scalar()
    )
    logger.debug("Inventory on-hand lookup: project_id=%s bom_id=%s on_hand=%s", project_id, bom_id, on_hand)
    return Decimal(on_hand or 0)


def lock_balances(db: Session, project_id: int, bom_id: int) -> list[InventoryTrack]:
    """Balance rows for a product, locked for the rest of the transaction, oldest first."""
    return (
        db.query(InventoryTrack)
        .filter(InventoryTrack.project_id == project_id, InventoryTrack.bom_id == bom_id)
        .order_by(InventoryTrack.inv_track_id.asc())
        .with_for_update()
        .all()
    )


def create_inventory_transaction(
    db: Session,
    *,
    project_id: int,
    bom_id: int,
    qty: Decimal,
    status: str,
    warehouse_id: int | None = None,
    purchase_id: int | None = None,
    task_id: int | None = None,
) -> InventoryTransaction:
    txn = InventoryTransaction(
        project_id=project_id,
        bom_id=bom_id,
        bom_qty=quantize_qty(qty),
        status=status,
        warehouse_id=warehouse_id,
        purchase_id=purchase_id,
        task_id=task_id,
        time_date=datetime.utcnow(),
    )
    db.add(txn)
    db.flush()
    return txn


def apply_balance_delta(
    db: Session,
    *,
    project_id: int,
    bom_id: int,
    delta: Decimal,
    transaction: InventoryTransaction | None = None,
) -> list[InventoryTrack]:
    """Add ``delta`` to the project's balance for ``bom_id``.

    Increases land on the oldest balance row; decreases drain rows oldest first.
    A product with no balance row gets one holding ``max(0, delta)``.
    """
    delta = Decimal(delta)
    now = datetime.utcnow()
    transaction_id = transaction.inv_transaction_id if transaction is not None else None
    rows = lock_balances(db, project_id, bom_id)

    if not rows:
        if delta < 0:
            logger.warning(
                "Subtract against missing balance row: project_id=%s bom_id=%s delta=%s",
                project_id,
                bom_id,
                delta,
            )
        row = InventoryTrack(
            project_id=project_id,
            bom_id=bom_id,
            warehouse_id=transaction.warehouse_id if transaction is not None else None,
            bom_qty=quantize_qty(max(Decimal("0"), delta)),
            last_updated=now,
            last_inv_transactionid=transaction_id,
        )
        db.add(row)
        db.flush()
        return [row]

    if delta >= 0:
        touched = [rows[0]]
        rows[0].bom_qty = quantize_qty(Decimal(rows[0].bom_qty or 0) + delta)
    else:
        on_hand = sum((Decimal(row.bom_qty or 0) for row in rows), Decimal("0"))
        if on_hand + delta < 0:
            raise NegativeBalanceError(project_id, bom_id, on_hand, delta)
        remaining = -delta
        touched = []
        for row in rows:
            if remaining <= 0:
                break
            current = Decimal(row.bom_qty or 0)
            if current <= 0:
                continue
            taken = min(current, remaining)
            row.bom_qty = quantize_qty(current - taken)
            remaining -= taken
            touched.append(row)

    for row in touched:
        row.last_updated = now
        if transaction_id is not None:
            row.last_inv_transactionid = transaction_id
    db.flush()
    return touched


def list_project_balances(db: Session, project_id: int) -> list[dict]:
    rows = (
        db.query(
            InventoryTrack.bom_id,
            BomProduct.product_name,
            BomProduct.unit,
            func.coalesce(func.sum(InventoryTrack.bom_qty), 0),
            func.max(InventoryTrack.last_updated),
        )
        .join(BomProduct, BomProduct.id == InventoryTrack.bom_id)
        .filter(InventoryTrack.project_id == project_id)
        .group_by(InventoryTrack.bom_id, BomProduct.product_name, BomProduct.unit)
        .order_by(BomProduct.product_name, InventoryTrack.bom_id)
        .all()
    )
    return [
        {
            "bom_id": bom_id,
            "product_name": product_name,
            "unit": unit,
            "bom_qty": Decimal(total or 0),
            "last_updated": last_updated,
        }
        for bom_id, product_name, unit, total, last_updated in rows
    ]
