from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class BomAdjustmentLineRequest(BaseModel):
    bom_id: int
    quantity: int = Field(..., gt=0)
    operation: str = Field(..., description="Either 'add' or 'subtract'.")


class InventoryAdjustmentRequest(BaseModel):
    element_type_id: int
    element_count: int
    project_id: int
    bom: List[BomAdjustmentLineRequest] = Field(..., min_length=1)


class InventoryAdjustmentResponse(BaseModel):
    success: bool
    message: str
    adjustment_id: Optional[int] = None


class InventoryAdjustmentLogResponse(BaseModel):
    id: int
    element_type_id: int = 0
    product_id: int = 0
    quantity: int = 0
    reason: Optional[str] = None
    adjusted_by: str
    adjusted_at: datetime
    project_id: int = 0
    element_count: int = 0

    model_config = ConfigDict(from_attributes=True)
