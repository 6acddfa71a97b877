"""
Admin Router

Every route requires a user_roles admin row (require_admin).
- /admin-users      GET list, POST {userId, role}
- /admin-coupons    GET list, POST create, DELETE /{coupon_id}
- /admin-purchases  GET paginated purchase rows
"""
import logging
import math
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from storefront.constants import ADMIN_PAGE_SIZE_DEFAULT, ADMIN_PAGE_SIZE_MAX, ADMIN_RATE_LIMIT
from storefront.dependencies import AuthenticatedUser, get_privileged_store, require_admin
from storefront.rate_limit import limiter
from storefront.schemas.admin import (
    AdminUser,
    AdminUserList,
    CouponCreate,
    CouponList,
    CouponResponse,
    SetRoleRequest,
)
from storefront.schemas.purchases import PurchaseListResponse, PurchaseResponse
from storefront.services.admin import AdminService
from storefront.services.coupons import CouponService
from storefront.stores import PrivilegedStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["admin"])


# ===== Users =====

@router.get("/admin-users", response_model=AdminUserList)
@limiter.limit(ADMIN_RATE_LIMIT)
def list_users(
    request: Request,
    admin: AuthenticatedUser = Depends(require_admin),
    store: PrivilegedStore = Depends(get_privileged_store),
):
    users = AdminService(store).list_users()
    return AdminUserList(users=[AdminUser(**user) for user in users])


@router.post("/admin-users")
@limiter.limit(ADMIN_RATE_LIMIT)
def set_user_role(
    request: Request,
    data: SetRoleRequest,
    admin: AuthenticatedUser = Depends(require_admin),
    store: PrivilegedStore = Depends(get_privileged_store),
):
    AdminService(store).set_role(admin.id, data.user_id, data.role)
    return {"success": True}


# ===== Coupons =====

@router.get("/admin-coupons", response_model=CouponList)
@limiter.limit(ADMIN_RATE_LIMIT)
def list_coupons(
    request: Request,
    admin: AuthenticatedUser = Depends(require_admin),
    store: PrivilegedStore = Depends(get_privileged_store),
):
    coupons = CouponService(store).list_coupons()
    return CouponList(coupons=[CouponResponse.model_validate(c) for c in coupons])


@router.post("/admin-coupons", response_model=CouponResponse, status_code=201)
@limiter.limit(ADMIN_RATE_LIMIT)
def create_coupon(
    request: Request,
    data: CouponCreate,
    admin: AuthenticatedUser = Depends(require_admin),
    store: PrivilegedStore = Depends(get_privileged_store),
):
    coupon = CouponService(store).create_coupon(data.code, data.discount_percent)
    return CouponResponse.model_validate(coupon)


@router.delete("/admin-coupons/{coupon_id}")
@limiter.limit(ADMIN_RATE_LIMIT)
def delete_coupon(
    request: Request,
    coupon_id: str,
    admin: AuthenticatedUser = Depends(require_admin),
    store: PrivilegedStore = Depends(get_privileged_store),
):
    CouponService(store).delete_coupon(coupon_id)
    return {"success": True}


# ===== Purchases =====

@router.get("/admin-purchases", response_model=PurchaseListResponse)
@limiter.limit(ADMIN_RATE_LIMIT)
def list_purchases(
    request: Request,
    status: Optional[str] = Query(None, max_length=20),
    page: int = Query(1, ge=1),
    page_size: int = Query(ADMIN_PAGE_SIZE_DEFAULT, ge=1, le=ADMIN_PAGE_SIZE_MAX),
    admin: AuthenticatedUser = Depends(require_admin),
    store: PrivilegedStore = Depends(get_privileged_store),
):
    rows, total = AdminService(store).list_purchases(status, page, page_size)
    return PurchaseListResponse(
        items=[PurchaseResponse.model_validate(row) for row in rows],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=math.ceil(total / page_size) if total else 0,
    )
