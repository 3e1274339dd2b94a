from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.auth import get_current_user
from app.bom import schemas
from app.bom.diff import get_element_type_with_updated_bom, list_element_types_with_updated_bom
from app.db import get_db


router = APIRouter(
    prefix="/element_types_with_updated_bom",
    tags=["inventory-adjustment"],
    dependencies=[Depends(get_current_user)],
)


@router.get("/{project_id}", response_model=List[schemas.ElementTypeBomDiff])
def list_updated_bom_element_types(project_id: int, db: Session = Depends(get_db)):
    return list_element_types_with_updated_bom(db, project_id)


@router.get("/{project_id}/{element_type_id}", response_model=Optional[schemas.ElementTypeBomDiff])
def get_updated_bom_element_type(project_id: int, element_type_id: int, db: Session = Depends(get_db)):
    return get_element_type_with_updated_bom(db, project_id, element_type_id)
