"""Compare the BOM an element was produced against with its element type's current BOM.

Two rows describe the same unchanged BOM line when the revision row links to the
current row (``element_type_bom_id``) and both quantities agree once NULL is read
as zero. ``bom_product`` and ``bom_revision_product`` are the anti-joins of each
side against the other; ``bom_required_adjustment`` merges the two unmatched
sides by ``product_id`` into signed per-product deltas.
"""

from dataclasses import dataclass, field
from datetime import timedelta
import logging
from typing import Iterable, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.bom import schemas
from app.models import (
    INITIAL_VERSION_LABELS,
    Activity,
    Element,
    ElementType,
    ElementTypeBOM,
    ElementTypeRevisionBOM,
)
from app.sql_expressions import exact_bom_match


logger = logging.getLogger(__name__)

LATEST_REVISION_WINDOW = timedelta(seconds=1)


@dataclass
class BomDiff:
    bom_product: list[schemas.BomProductLine] = field(default_factory=list)
    bom_revision_product: list[schemas.BomProductLine] = field(default_factory=list)
    bom_required_adjustment: list[schemas.BomAdjustmentLine] = field(default_factory=list)


def completed_activity_exists(db: Session):
    return (
        db.query(Activity.id)
        .filter(Activity.element_id == Element.id, Activity.completed.is_(True))
        .exists()
    )


def eligible_elements_query(db: Session, project_id: int, element_type_id: Optional[int] = None):
    """Produced elements whose element type still has an unreconciled BOM revision."""
    query = (
        db.query(ElementType, Element)
        .join(Element, Element.element_type_id == ElementType.element_type_id)
        .filter(
            ElementType.project_id == project_id,
            ElementType.element_type_version.notin_(INITIAL_VERSION_LABELS),
            ElementType.inv_adjust.is_(False),
            Element.instage.is_(True),
            Element.inv_adjust.is_(False),
            completed_activity_exists(db),
        )
    )
    if element_type_id is not None:
        query = query.filter(ElementType.element_type_id == element_type_id)
    return query.order_by(ElementType.element_type_name, Element.element_id, Element.id)


def unmatched_current_lines(db: Session, element_type: ElementType, revision_ids: list[int]) -> list[ElementTypeBOM]:
    return (
        db.query(ElementTypeBOM)
        .outerjoin(
            ElementTypeRevisionBOM,
            exact_bom_match(ElementTypeBOM, ElementTypeRevisionBOM)
            & ElementTypeRevisionBOM.revision_id.in_(revision_ids),
        )
        .filter(
            ElementTypeBOM.element_type_id == element_type.element_type_id,
            ElementTypeBOM.project_id == element_type.project_id,
            ElementTypeRevisionBOM.id.is_(None),
        )
        .order_by(ElementTypeBOM.id)
        .all()
    )


def unmatched_revision_lines(
    db: Session,
    element_type: ElementType,
    revision_ids: list[int],
) -> list[ElementTypeRevisionBOM]:
    if not revision_ids:
        return []
    return (
        db.query(ElementTypeRevisionBOM)
        .outerjoin(ElementTypeBOM, exact_bom_match(ElementTypeBOM, ElementTypeRevisionBOM))
        .filter(
            ElementTypeRevisionBOM.element_type_id == element_type.element_type_id,
            ElementTypeRevisionBOM.project_id == element_type.project_id,
            ElementTypeRevisionBOM.revision_id.in_(revision_ids),
            ElementTypeBOM.id.is_(None),
        )
        .order_by(ElementTypeRevisionBOM.revision_id, ElementTypeRevisionBOM.id)
        .all()
    )


def merge_required_adjustment(
    current_lines: Iterable,
    revision_lines: Iterable,
) -> list[schemas.BomAdjustmentLine]:
    """Join the unmatched sides by product; a side without the product counts as zero."""
    current_lines = list(current_lines)
    revision_lines = list(revision_lines)

    revision_by_product = {}
    for line in revision_lines:
        revision_by_product.setdefault(line.product_id, line)
    current_products = {line.product_id for line in current_lines}

    adjustments: list[schemas.BomAdjustmentLine] = []
    seen: set[int] = set()
    for line in current_lines:
        if line.product_id in seen:
            continue
        seen.add(line.product_id)
        quantity = line.quantity or 0
        revision = revision_by_product.get(line.product_id)
        revision_quantity = (revision.quantity or 0) if revision is not None else 0
        if quantity == revision_quantity:
            continue
        adjustments.append(
            schemas.BomAdjustmentLine(
                product_id=line.product_id,
                product_name=line.product_name,
                quantity=quantity,
                revision_quantity=revision_quantity,
                quantity_change=quantity - revision_quantity,
            )
        )

    for line in revision_lines:
        if line.product_id in current_products or line.product_id in seen:
            continue
        seen.add(line.product_id)
        revision_quantity = line.quantity or 0
        if revision_quantity == 0:
            continue
        adjustments.append(
            schemas.BomAdjustmentLine(
                product_id=line.product_id,
                product_name=line.product_name,
                quantity=0,
                revision_quantity=revision_quantity,
                quantity_change=-revision_quantity,
            )
        )
    return adjustments


def compute_bom_diff(db: Session, element_type: ElementType, revision_ids: list[int]) -> BomDiff:
    current_lines = unmatched_current_lines(db, element_type, revision_ids)
    revision_lines = unmatched_revision_lines(db, element_type, revision_ids)
    diff = BomDiff(
        bom_product=[schemas.BomProductLine.model_validate(line) for line in current_lines],
        bom_revision_product=[schemas.BomProductLine.model_validate(line) for line in revision_lines],
        bom_required_adjustment=merge_required_adjustment(current_lines, revision_lines),
    )
    logger.debug(
        "BOM diff: element_type_id=%s revision_ids=%s removed_or_changed=%s revision_only=%s adjustments=%s",
        element_type.element_type_id,
        revision_ids,
        len(diff.bom_product),
        len(diff.bom_revision_product),
        len(diff.bom_required_adjustment),
    )
    return diff


def latest_revision_ids(db: Session, element_type: ElementType) -> list[int]:
    """Revisions written within one second of the newest one, treated as a single bulk edit."""
    scope = (
        ElementTypeRevisionBOM.element_type_id == element_type.element_type_id,
        ElementTypeRevisionBOM.project_id == element_type.project_id,
    )
    latest_changed_at = db.query(func.max(ElementTypeRevisionBOM.changed_at)).filter(*scope).scalar()
    if latest_changed_at is None:
        return []
    rows = (
        db.query(ElementTypeRevisionBOM.revision_id)
        .filter(*scope, ElementTypeRevisionBOM.changed_at >= latest_changed_at - LATEST_REVISION_WINDOW)
        .distinct()
        .order_by(ElementTypeRevisionBOM.revision_id)
        .all()
    )
    return [revision_id for (revision_id,) in rows]


def _diff_against_element_revision(db: Session, element_type: ElementType, bom_revision_id: Optional[int]) -> BomDiff:
    # An element stamped with the pending revision was built against the current BOM.
    if bom_revision_id is not None and bom_revision_id == element_type.pending_bom_revision_id:
        return BomDiff()
    revision_ids = [bom_revision_id] if bom_revision_id is not None else []
    return compute_bom_diff(db, element_type, revision_ids)


def _element_entry(element: Element, bom_revision_id: Optional[int]) -> schemas.ElementWithRevision:
    return schemas.ElementWithRevision(
        element_id=element.id,
        element_code=element.element_id,
        bom_revision_id=bom_revision_id,
        drawing_revision_id=element.drawing_revision_id,
        element_updated_at=element.update_at,
    )


def _diff_record(
    element_type: ElementType,
    elements: list[schemas.ElementWithRevision],
    diff: BomDiff,
) -> schemas.ElementTypeBomDiff:
    return schemas.ElementTypeBomDiff(
        element_type_id=element_type.element_type_id,
        element_type_name=element_type.element_type_name,
        project_id=element_type.project_id,
        element_type_created_by=element_type.created_by,
        element_type_version=element_type.element_type_version,
        element_type_updated_at=element_type.update_at,
        bom_product=diff.bom_product,
        bom_revision_product=diff.bom_revision_product,
        bom_required_adjustment=diff.bom_required_adjustment,
        elements=elements,
    )


def list_element_types_with_updated_bom(db: Session, project_id: int) -> list[schemas.ElementTypeBomDiff]:
    """Diff each eligible element against the revision stamped on it.

    Elements of one element type that share a ``bom_revision_id`` are reported in one
    record; a different stamped revision yields a separate record for the same type.
    """
    groups: dict[tuple[int, Optional[int]], tuple[ElementType, list[Element]]] = {}
    for element_type, element in eligible_elements_query(db, project_id).all():
        key = (element_type.element_type_id, element.bom_revision_id)
        groups.setdefault(key, (element_type, []))[1].append(element)

    records = []
    for (_, bom_revision_id), (element_type, elements) in groups.items():
        diff = _diff_against_element_revision(db, element_type, bom_revision_id)
        records.append(
            _diff_record(
                element_type,
                [_element_entry(element, element.bom_revision_id) for element in elements],
                diff,
            )
        )
    logger.debug("Updated BOM lookup: project_id=%s records=%s", project_id, len(records))
    return records


def get_element_type_with_updated_bom(
    db: Session,
    project_id: int,
    element_type_id: int,
) -> Optional[schemas.ElementTypeBomDiff]:
    """Diff the current BOM against the element type's most recent revision."""
    rows = eligible_elements_query(db, project_id, element_type_id=element_type_id).all()
    if not rows:
        return None

    element_type = rows[0][0]
    revision_ids = latest_revision_ids(db, element_type)
    compared_revision_id = max(revision_ids) if revision_ids else None
    diff = compute_bom_diff(db, element_type, revision_ids)
    return _diff_record(
        element_type,
        [_element_entry(element, compared_revision_id) for _, element in rows],
        diff,
    )
