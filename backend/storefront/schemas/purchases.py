from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict


class PurchaseResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    product_id: str
    status: str
    external_reference: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class MyPurchase(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    product_id: str
    status: str
    updated_at: Optional[datetime] = None


class MyPurchaseList(BaseModel):
    purchases: List[MyPurchase]


class PurchaseListResponse(BaseModel):
    items: List[PurchaseResponse]
    total: int
    page: int
    page_size: int
    total_pages: int
