import uuid

from sqlalchemy import Column, Integer, String, Boolean, TIMESTAMP, CheckConstraint
from sqlalchemy.sql import func
from storefront.database import Base


class Coupon(Base):
    """Single-use discount code, consumed when a checkout intent is built"""
    __tablename__ = "coupons"
    __table_args__ = (
        CheckConstraint("discount_percent >= 1 AND discount_percent <= 100", name="ck_coupons_percent"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    # Stored upper-case
    code = Column(String(50), unique=True, nullable=False, index=True)
    discount_percent = Column(Integer, nullable=False)
    used = Column(Boolean, default=False, nullable=False)
    used_by = Column(String(36), nullable=True)
    used_at = Column(TIMESTAMP, nullable=True)
    created_at = Column(TIMESTAMP, server_default=func.current_timestamp())
