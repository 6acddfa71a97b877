import uuid

from sqlalchemy import Column, String, TIMESTAMP, UniqueConstraint, ForeignKey
from sqlalchemy.sql import func
from storefront.database import Base


class User(Base):
    """
    Identity provider user mirror.
    Ids are the `sub` claim of the bearer token.
    """
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email = Column(String(255), nullable=True, index=True)
    created_at = Column(TIMESTAMP, server_default=func.current_timestamp())


class UserRole(Base):
    __tablename__ = "user_roles"
    __table_args__ = (UniqueConstraint("user_id", "role", name="uq_user_roles_user_role"),)

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    role = Column(String(20), nullable=False)
    created_at = Column(TIMESTAMP, server_default=func.current_timestamp())
