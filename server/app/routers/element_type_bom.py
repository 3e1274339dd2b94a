from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session, selectinload

from app.auth import get_current_user
from app.bom import schemas
from app.bom.service import ElementTypeBomError, list_bom_revisions, replace_element_type_bom
from app.db import get_db
from app.models import ElementType, User


router = APIRouter(prefix="/element_type_bom", tags=["element-type-bom"])


def _get_element_type(db: Session, element_type_id: int) -> ElementType:
    element_type = (
        db.query(ElementType)
        .options(selectinload(ElementType.bom_lines))
        .filter(ElementType.element_type_id == element_type_id)
        .first()
    )
    if not element_type:
        raise HTTPException(status_code=404, detail="Element type not found.")
    return element_type


@router.put("/{element_type_id}", response_model=schemas.ElementTypeBomResponse)
def update_element_type_bom(
    element_type_id: int,
    payload: schemas.ElementTypeBomUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    element_type = _get_element_type(db, element_type_id)
    try:
        archived_revision_id = replace_element_type_bom(
            db,
            element_type,
            [line.model_dump() for line in payload.bom],
            updated_by=current_user.display_name,
        )
    except ElementTypeBomError as exc:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(exc))
    db.commit()
    db.refresh(element_type)

    return schemas.ElementTypeBomResponse(
        element_type_id=element_type.element_type_id,
        element_type_version=element_type.element_type_version,
        archived_revision_id=archived_revision_id,
        bom=element_type.bom_lines,
    )


@router.get(
    "/{element_type_id}/revisions",
    response_model=List[schemas.BomRevisionResponse],
    dependencies=[Depends(get_current_user)],
)
def list_element_type_bom_revisions(element_type_id: int, db: Session = Depends(get_db)):
    element_type = db.get(ElementType, element_type_id)
    if element_type is None:
        return []
    return list_bom_revisions(db, element_type)
