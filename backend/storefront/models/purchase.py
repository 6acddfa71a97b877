"""
Purchase (Entitlement) Model

One row per (user, product). A product is owned iff its row is `completed`.
Rows are reset to `pending` on every new checkout attempt and moved to a
terminal status by the reconcilers; they are never deleted.
"""
import enum
import uuid

from sqlalchemy import Column, Integer, String, TIMESTAMP, UniqueConstraint
from sqlalchemy.sql import func
from storefront.database import Base


class PurchaseStatus(str, enum.Enum):
    """Purchase status enumeration"""
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class Purchase(Base):
    __tablename__ = "purchases"
    __table_args__ = (UniqueConstraint("user_id", "product_id", name="uq_purchases_user_product"),)

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), nullable=False, index=True)
    product_id = Column(String(36), nullable=False, index=True)

    # Plain string: the legacy postback may store statuses outside PurchaseStatus
    status = Column(String(20), default=PurchaseStatus.PENDING.value, nullable=False, index=True)

    # Processor transaction / preference / order id (audit)
    external_reference = Column(String(255), nullable=True)

    created_at = Column(TIMESTAMP, server_default=func.current_timestamp())
    updated_at = Column(TIMESTAMP, server_default=func.current_timestamp(), onupdate=func.current_timestamp())


class PurchaseStatusHistory(Base):
    """Append-only log of purchase status transitions"""
    __tablename__ = "purchase_status_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    purchase_id = Column(String(36), nullable=False, index=True)
    previous_status = Column(String(20), nullable=True)
    new_status = Column(String(20), nullable=False)
    source = Column(String(50), nullable=False)
    created_at = Column(TIMESTAMP, server_default=func.current_timestamp())
