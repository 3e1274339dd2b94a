from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.auth import get_current_user
from app.db import get_db
from app.inventory import schemas
from app.inventory.service import list_project_balances


router = APIRouter(prefix="/inventory", tags=["inventory"], dependencies=[Depends(get_current_user)])


@router.get("/{project_id}", response_model=List[schemas.InventoryBalanceResponse])
def list_inventory_balances(project_id: int, db: Session = Depends(get_db)):
    return list_project_balances(db, project_id)
