from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class BomProductLine(BaseModel):
    product_id: int
    product_name: Optional[str] = None
    quantity: Optional[int] = None

    model_config = ConfigDict(from_attributes=True)


class BomAdjustmentLine(BaseModel):
    product_id: int
    product_name: Optional[str] = None
    quantity: int
    revision_quantity: int
    quantity_change: int


class ElementWithRevision(BaseModel):
    element_id: int
    element_code: Optional[str] = None
    bom_revision_id: Optional[int] = None
    drawing_revision_id: Optional[int] = None
    element_updated_at: Optional[datetime] = None


class ElementTypeBomDiff(BaseModel):
    element_type_id: int
    element_type_name: str
    project_id: int
    element_type_created_by: Optional[str] = None
    element_type_version: str
    element_type_updated_at: Optional[datetime] = None
    bom_product: List[BomProductLine] = Field(default_factory=list)
    bom_revision_product: List[BomProductLine] = Field(default_factory=list)
    bom_required_adjustment: List[BomAdjustmentLine] = Field(default_factory=list)
    elements: List[ElementWithRevision] = Field(default_factory=list)


class BomLineInput(BaseModel):
    product_id: int
    quantity: int = Field(..., ge=0)
    product_name: Optional[str] = None
    unit: Optional[str] = None


class ElementTypeBomUpdate(BaseModel):
    bom: List[BomLineInput]


class ElementTypeBomLineResponse(BaseModel):
    id: int
    product_id: int
    product_name: str
    quantity: Optional[int] = None
    unit: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class ElementTypeBomResponse(BaseModel):
    element_type_id: int
    element_type_version: str
    archived_revision_id: Optional[int] = None
    bom: List[ElementTypeBomLineResponse]


class BomRevisionLineResponse(BaseModel):
    element_type_bom_id: int
    product_id: int
    product_name: str
    quantity: Optional[int] = None

    model_config = ConfigDict(from_attributes=True)


class BomRevisionResponse(BaseModel):
    revision_id: int
    changed_at: datetime
    changed_by: Optional[str] = None
    lines: List[BomRevisionLineResponse]
