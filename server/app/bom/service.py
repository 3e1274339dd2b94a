from datetime import datetime
import logging
import re
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.models import BomProduct, Element, ElementType, ElementTypeBOM, ElementTypeRevisionBOM


logger = logging.getLogger(__name__)

_VERSION_PATTERN = re.compile(r"^(?P<prefix>.*?)(?P<number>\d+)$")


class ElementTypeBomError(ValueError):
    pass


def next_version_label(version: Optional[str]) -> str:
    """RV-1 -> RV-2, RV-09 -> RV-10; labels without a trailing number gain one."""
    if not version:
        return "RV-2"
    match = _VERSION_PATTERN.match(version)
    if not match:
        return f"{version}-2"
    number = match.group("number")
    bumped = str(int(number) + 1).zfill(len(number))
    return f"{match.group('prefix')}{bumped}"


def allocate_revision_id(db: Session) -> int:
    """Next revision id not yet archived, pending, or stamped on an element."""
    archived = db.query(func.max(ElementTypeRevisionBOM.revision_id)).scalar() or 0
    pending = db.query(func.max(ElementType.pending_bom_revision_id)).scalar() or 0
    # An empty-BOM edit clears the pending id without archiving it.
    stamped = db.query(func.max(Element.bom_revision_id)).scalar() or 0
    return max(archived, pending, stamped) + 1


def effective_revision_id(db: Session, element_type: ElementType) -> int:
    """Revision id under which the element type's current BOM will be archived."""
    if element_type.pending_bom_revision_id is None:
        element_type.pending_bom_revision_id = allocate_revision_id(db)
        db.flush()
    return element_type.pending_bom_revision_id


def create_element(
    db: Session,
    *,
    element_type: ElementType,
    element_code: str,
    drawing_revision_id: Optional[int] = None,
    instage: bool = False,
) -> Element:
    element = Element(
        element_id=element_code,
        element_type_id=element_type.element_type_id,
        project_id=element_type.project_id,
        bom_revision_id=effective_revision_id(db, element_type),
        drawing_revision_id=drawing_revision_id,
        instage=instage,
        inv_adjust=False,
        created_at=datetime.utcnow(),
    )
    db.add(element)
    db.flush()
    return element


def snapshot_bom_revision(db: Session, element_type: ElementType, changed_by: Optional[str]) -> Optional[int]:
    """Copy the current BOM into revision rows. Returns the revision id, or None for an empty BOM."""
    lines = (
        db.query(ElementTypeBOM)
        .filter(
            ElementTypeBOM.element_type_id == element_type.element_type_id,
            ElementTypeBOM.project_id == element_type.project_id,
        )
        .order_by(ElementTypeBOM.id)
        .all()
    )
    if not lines:
        # Elements stamped with the pending id now compare against an empty revision.
        element_type.pending_bom_revision_id = None
        db.flush()
        return None

    revision_id = effective_revision_id(db, element_type)
    changed_at = datetime.utcnow()
    for line in lines:
        db.add(
            ElementTypeRevisionBOM(
                revision_id=revision_id,
                element_type_bom_id=line.id,
                element_type_id=element_type.element_type_id,
                project_id=element_type.project_id,
                product_id=line.product_id,
                product_name=line.product_name,
                quantity=line.quantity,
                units=line.unit,
                rate=line.rate,
                changed_at=changed_at,
                changed_by=changed_by,
            )
        )
    element_type.pending_bom_revision_id = None
    db.flush()
    logger.info(
        "Archived BOM revision: element_type_id=%s revision_id=%s lines=%s",
        element_type.element_type_id,
        revision_id,
        len(lines),
    )
    return revision_id


def replace_element_type_bom(
    db: Session,
    element_type: ElementType,
    lines_payload: list[dict],
    *,
    updated_by: Optional[str],
) -> Optional[int]:
    """Archive the current BOM, then rewrite it in place keeping line ids for unchanged products."""
    product_ids = [line["product_id"] for line in lines_payload]
    if len(set(product_ids)) != len(product_ids):
        raise ElementTypeBomError("Each product may appear only once in a BOM.")
    products = {
        product.id: product
        for product in db.query(BomProduct).filter(BomProduct.id.in_(product_ids)).all()
    } if product_ids else {}
    missing = [product_id for product_id in product_ids if product_id not in products]
    if missing:
        raise ElementTypeBomError(f"Products not found: {', '.join(str(v) for v in missing)}")

    archived_revision_id = snapshot_bom_revision(db, element_type, updated_by)

    now = datetime.utcnow()
    existing = {line.product_id: line for line in element_type.bom_lines}
    for payload in lines_payload:
        product = products[payload["product_id"]]
        line = existing.pop(product.id, None)
        if line is None:
            line = ElementTypeBOM(
                element_type_id=element_type.element_type_id,
                project_id=element_type.project_id,
                product_id=product.id,
            )
            element_type.bom_lines.append(line)
        line.product_name = payload.get("product_name") or product.product_name
        line.quantity = payload["quantity"]
        line.unit = payload.get("unit") or product.unit
        line.rate = product.rate
        line.updated_at = now
        line.updated_by = updated_by
    for line in existing.values():
        element_type.bom_lines.remove(line)

    element_type.element_type_version = next_version_label(element_type.element_type_version)
    element_type.update_at = now
    db.flush()
    return archived_revision_id


def list_bom_revisions(db: Session, element_type: ElementType) -> list[dict]:
    rows = (
        db.query(ElementTypeRevisionBOM)
        .filter(
            ElementTypeRevisionBOM.element_type_id == element_type.element_type_id,
            ElementTypeRevisionBOM.project_id == element_type.project_id,
        )
        .order_by(ElementTypeRevisionBOM.changed_at.desc(), ElementTypeRevisionBOM.revision_id.desc(), ElementTypeRevisionBOM.id)
        .all()
    )
    revisions: dict[int, dict] = {}
    for row in rows:
        revision = revisions.setdefault(
            row.revision_id,
            {"revision_id": row.revision_id, "changed_at": row.changed_at, "changed_by": row.changed_by, "lines": []},
        )
        revision["lines"].append(row)
    return list(revisions.values())
