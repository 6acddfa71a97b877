from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class CaptureRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    order_id: str = Field(..., alias="orderId", min_length=1, max_length=64)


class CaptureResponse(BaseModel):
    status: str
    purchase_ids: Optional[List[str]] = None
    already_captured: Optional[bool] = None
