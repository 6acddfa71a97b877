"""
Pydantic Schemas
- checkout: checkout intent requests and responses
- webhooks: capture request / response
- purchases: purchase rows for buyers and admins
- admin: users, roles and coupons
"""
from storefront.schemas.checkout import (
    CheckoutRequest,
    MercadoPagoCheckoutResponse,
    PayPalCheckoutResponse,
)
from storefront.schemas.webhooks import CaptureRequest, CaptureResponse
from storefront.schemas.purchases import (
    MyPurchase,
    MyPurchaseList,
    PurchaseListResponse,
    PurchaseResponse,
)
from storefront.schemas.admin import (
    AdminUser,
    AdminUserList,
    CouponCreate,
    CouponList,
    CouponResponse,
    SetRoleRequest,
)

__all__ = [
    'CheckoutRequest',
    'MercadoPagoCheckoutResponse',
    'PayPalCheckoutResponse',
    'CaptureRequest',
    'CaptureResponse',
    'MyPurchase',
    'MyPurchaseList',
    'PurchaseListResponse',
    'PurchaseResponse',
    'AdminUser',
    'AdminUserList',
    'CouponCreate',
    'CouponList',
    'CouponResponse',
    'SetRoleRequest',
]
