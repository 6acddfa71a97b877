"""
Catalog Models

Read-only collaborators for checkout and delivery: products (effects),
bundles and the ordered bundle membership table.
"""
import uuid

from sqlalchemy import Column, Integer, String, Text, Boolean, Numeric, TIMESTAMP, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func
from storefront.database import Base


class Product(Base):
    __tablename__ = "products"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)

    # Price in the reference currency (constants.REFERENCE_CURRENCY)
    price = Column(Numeric(10, 2), nullable=False)

    # Delivery sources: Drive takes priority over the direct URL
    google_drive_file_id = Column(String(512), nullable=True)
    download_file_url = Column(String(1024), nullable=True)

    # Legacy processor product code (postback mapping)
    external_code = Column(String(100), nullable=True, unique=True)

    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(TIMESTAMP, server_default=func.current_timestamp())


class Bundle(Base):
    __tablename__ = "bundles"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(255), nullable=False)

    # Charged as-is, never the sum of the constituent prices
    price = Column(Numeric(10, 2), nullable=False)

    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(TIMESTAMP, server_default=func.current_timestamp())


class BundleProduct(Base):
    __tablename__ = "bundle_products"
    __table_args__ = (UniqueConstraint("bundle_id", "product_id", name="uq_bundle_products"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    bundle_id = Column(String(36), ForeignKey("bundles.id"), nullable=False, index=True)
    product_id = Column(String(36), ForeignKey("products.id"), nullable=False)
    position = Column(Integer, default=0, nullable=False)
