from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class CheckoutRequest(BaseModel):
    """Either productId or bundleId; bundleId wins when both are sent."""
    model_config = ConfigDict(populate_by_name=True)

    product_id: Optional[str] = Field(None, alias="productId", max_length=64)
    bundle_id: Optional[str] = Field(None, alias="bundleId", max_length=64)
    coupon_code: Optional[str] = Field(None, alias="couponCode", max_length=50)


class MercadoPagoCheckoutResponse(BaseModel):
    init_point: str
    purchase_id: Optional[str] = None
    purchase_ids: Optional[List[str]] = None


class PayPalCheckoutResponse(BaseModel):
    approve_url: str
    order_id: Optional[str] = None
    purchase_id: Optional[str] = None
    purchase_ids: Optional[List[str]] = None
