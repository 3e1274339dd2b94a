import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.adjustments import schemas
from app.adjustments.service import (
    InsufficientInventoryError,
    InventoryAdjustmentError,
    create_inventory_adjustment,
    list_adjustment_logs,
)
from app.auth import get_current_user
from app.db import get_db
from app.inventory.service import NegativeBalanceError
from app.models import User


logger = logging.getLogger(__name__)

router = APIRouter(tags=["inventory-adjustment"])


@router.post(
    "/inventory_adjustment",
    response_model=schemas.InventoryAdjustmentResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_inventory_adjustment_endpoint(
    payload: schemas.InventoryAdjustmentRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    try:
        logs = create_inventory_adjustment(db, payload.model_dump(), adjusted_by=current_user.display_name)
        db.commit()
    except InsufficientInventoryError as exc:
        db.rollback()
        logger.warning("Inventory adjustment rejected: %s", exc)
        raise HTTPException(
            status_code=400,
            detail={"code": exc.code, "message": str(exc), "violations": exc.violations},
        )
    except InventoryAdjustmentError as exc:
        db.rollback()
        logger.warning("Inventory adjustment rejected: %s", exc)
        raise HTTPException(status_code=400, detail={"code": exc.code, "message": str(exc)})
    except NegativeBalanceError as exc:
        db.rollback()
        logger.error("Inventory adjustment rolled back: %s", exc)
        raise HTTPException(
            status_code=500,
            detail={"code": "INVENTORY_CONSISTENCY", "message": str(exc)},
        )
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Inventory adjustment failed for project_id=%s", payload.project_id)
        raise HTTPException(
            status_code=500,
            detail={"code": "DATABASE_ERROR", "message": "Failed to apply inventory adjustment"},
        )

    return schemas.InventoryAdjustmentResponse(
        success=True,
        message="Inventory adjustments created successfully",
        adjustment_id=logs[0].id if logs else None,
    )


@router.get(
    "/inventory_adjustment_logs/{project_id}",
    response_model=List[schemas.InventoryAdjustmentLogResponse],
    dependencies=[Depends(get_current_user)],
)
def list_inventory_adjustment_logs(project_id: int, db: Session = Depends(get_db)):
    return list_adjustment_logs(db, project_id)
