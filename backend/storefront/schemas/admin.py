from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class AdminUser(BaseModel):
    id: str
    email: Optional[str] = None
    created_at: Optional[datetime] = None
    role: str


class AdminUserList(BaseModel):
    users: List[AdminUser]


class SetRoleRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: Optional[str] = Field(None, alias="userId", max_length=64)
    role: Optional[str] = Field(None, max_length=20)


class CouponCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=50)
    discount_percent: int = Field(..., ge=1, le=100)


class CouponResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    code: str
    discount_percent: int
    used: bool
    used_by: Optional[str] = None
    used_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class CouponList(BaseModel):
    coupons: List[CouponResponse]
