from datetime import datetime
from typing import Optional

from pydantic import BaseModel, condecimal


DecimalValue = condecimal(max_digits=14, decimal_places=2)


class InventoryBalanceResponse(BaseModel):
    bom_id: int
    product_name: str
    unit: Optional[str] = None
    bom_qty: DecimalValue
    last_updated: Optional[datetime] = None
