"""
Data Stores

Two explicit collaborators wrap the SQLAlchemy session:

- UserScopedStore: what the calling user may see (active catalog, own purchases)
- PrivilegedStore: server-trusted access to purchases, coupons, users and roles

Every write commits on its own; a purchase row is updated atomically by a
single-row UPDATE, so concurrent reconcilers never need cross-row locks.
"""
import logging
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Set, Tuple

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storefront.constants import ROLE_ADMIN, ROLE_USER
from storefront.models.catalog import Product, Bundle, BundleProduct
from storefront.models.coupon import Coupon
from storefront.models.purchase import Purchase, PurchaseStatus, PurchaseStatusHistory
from storefront.models.user import User, UserRole

logger = logging.getLogger(__name__)


class UserScopedStore:
    """Reads restricted to what `user_id` is allowed to see."""

    def __init__(self, db: Session, user_id: str):
        self.db = db
        self.user_id = user_id

    def get_product(self, product_id: str) -> Optional[Product]:
        return (
            self.db.query(Product)
            .filter(Product.id == product_id, Product.is_active == True)  # noqa: E712
            .first()
        )

    def get_bundle(self, bundle_id: str) -> Optional[Bundle]:
        return (
            self.db.query(Bundle)
            .filter(Bundle.id == bundle_id, Bundle.is_active == True)  # noqa: E712
            .first()
        )

    def bundle_product_ids(self, bundle_id: str) -> List[str]:
        """Constituent product ids in stable (position, row) order."""
        rows = (
            self.db.query(BundleProduct.product_id)
            .join(Product, Product.id == BundleProduct.product_id)
            .filter(BundleProduct.bundle_id == bundle_id)
            .order_by(BundleProduct.position, BundleProduct.id)
            .all()
        )
        return [row[0] for row in rows]

    def my_purchases(self) -> List[Purchase]:
        return (
            self.db.query(Purchase)
            .filter(Purchase.user_id == self.user_id)
            .order_by(Purchase.created_at.desc())
            .all()
        )


class PrivilegedStore:
    """Server-trusted access; never hand this to code acting on user input alone."""

    def __init__(self, db: Session):
        self.db = db

    # ===== Purchases =====

    def get_purchase_by_id(self, purchase_id: str) -> Optional[Purchase]:
        return self.db.query(Purchase).filter(Purchase.id == purchase_id).first()

    def get_purchase(self, user_id: str, product_id: str) -> Optional[Purchase]:
        return (
            self.db.query(Purchase)
            .filter(Purchase.user_id == user_id, Purchase.product_id == product_id)
            .first()
        )

    def has_completed_purchase(self, user_id: str, product_id: str) -> bool:
        return (
            self.db.query(Purchase.id)
            .filter(
                Purchase.user_id == user_id,
                Purchase.product_id == product_id,
                Purchase.status == PurchaseStatus.COMPLETED.value,
            )
            .first()
            is not None
        )

    def owned_product_ids(self, user_id: str, product_ids: Iterable[str]) -> Set[str]:
        product_ids = list(product_ids)
        if not product_ids:
            return set()
        rows = (
            self.db.query(Purchase.product_id)
            .filter(
                Purchase.user_id == user_id,
                Purchase.status == PurchaseStatus.COMPLETED.value,
                Purchase.product_id.in_(product_ids),
            )
            .all()
        )
        return {row[0] for row in rows}

    def reset_or_create_pending(self, user_id: str, product_id: str, source: str) -> Optional[Purchase]:
        """
        Find the (user, product) row and reset it to pending, or insert one.

        A previous failed/cancelled/pending attempt is simply reset. A completed
        row is never touched, even if it completed after the caller's ownership
        check; None is returned for it.
        """
        purchase = self.get_purchase(user_id, product_id)
        if purchase is None:
            purchase = Purchase(user_id=user_id, product_id=product_id, status=PurchaseStatus.PENDING.value)
            self.db.add(purchase)
            try:
                self.db.commit()
            except IntegrityError:
                # Concurrent checkout inserted the same (user, product) first
                self.db.rollback()
                purchase = self.get_purchase(user_id, product_id)
                if purchase is None:
                    raise
            else:
                self.db.refresh(purchase)
                self._record_status_change(purchase.id, None, PurchaseStatus.PENDING, source)
                self.db.commit()
                return purchase

        prev = purchase.status
        result = self.db.execute(
            update(Purchase)
            .where(Purchase.id == purchase.id, Purchase.status != PurchaseStatus.COMPLETED.value)
            .values(status=PurchaseStatus.PENDING.value, external_reference=None)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            self.db.rollback()
            logger.info(f"[Purchase] {purchase.id} already completed, not reset")
            return None
        self._record_status_change(purchase.id, prev, PurchaseStatus.PENDING, source)
        self.db.commit()
        self.db.refresh(purchase)
        return purchase

    def set_external_reference(self, purchase_ids: Iterable[str], external_reference: str) -> None:
        self.db.execute(
            update(Purchase)
            .where(Purchase.id.in_(list(purchase_ids)))
            .values(external_reference=external_reference)
        )
        self.db.commit()

    def set_status(
        self,
        purchase_id: str,
        status: PurchaseStatus,
        source: str,
        external_reference: Optional[str] = None,
    ) -> Optional[Purchase]:
        """
        Overwrite a purchase's status (idempotent: replaying the same status
        only rewrites the same values). Returns None when no row matches.
        """
        purchase = self.get_purchase_by_id(purchase_id)
        if purchase is None:
            return None

        prev = purchase.status
        purchase.status = _status_value(status)
        if external_reference:
            purchase.external_reference = external_reference
        if prev != purchase.status:
            self._record_status_change(purchase.id, prev, status, source)
        self.db.commit()
        return purchase

    def upsert_purchase(
        self,
        user_id: str,
        product_id: str,
        status: str,
        external_reference: Optional[str],
        source: str,
    ) -> Purchase:
        """Insert or overwrite the (user, product) row, keyed by its unique constraint."""
        purchase = self.get_purchase(user_id, product_id)
        if purchase is None:
            purchase = Purchase(
                user_id=user_id,
                product_id=product_id,
                status=_status_value(status),
                external_reference=external_reference,
            )
            self.db.add(purchase)
            try:
                self.db.commit()
                self.db.refresh(purchase)
                self._record_status_change(purchase.id, None, status, source)
                self.db.commit()
                return purchase
            except IntegrityError:
                self.db.rollback()
                purchase = self.get_purchase(user_id, product_id)
                if purchase is None:
                    raise

        prev = purchase.status
        purchase.status = _status_value(status)
        purchase.external_reference = external_reference
        if prev != purchase.status:
            self._record_status_change(purchase.id, prev, status, source)
        self.db.commit()
        self.db.refresh(purchase)
        return purchase

    def list_purchases(
        self,
        status: Optional[PurchaseStatus] = None,
        offset: int = 0,
        limit: int = 50,
    ) -> Tuple[List[Purchase], int]:
        query = self.db.query(Purchase)
        if status is not None:
            query = query.filter(Purchase.status == _status_value(status))
        total = query.count()
        rows = query.order_by(Purchase.created_at.desc()).offset(offset).limit(limit).all()
        return rows, total

    def _record_status_change(self, purchase_id: str, prev, new, source: str) -> None:
        """Append a status history row; never breaks the caller."""
        try:
            self.db.add(
                PurchaseStatusHistory(
                    purchase_id=purchase_id,
                    previous_status=_status_value(prev),
                    new_status=_status_value(new),
                    source=source,
                )
            )
        except Exception as e:
            logger.warning(f"[Purchase] Failed to record status history: {e}")

    # ===== Catalog (unrestricted) =====

    def get_product(self, product_id: str) -> Optional[Product]:
        """Any product, active or not (owners keep access to retired effects)."""
        return self.db.query(Product).filter(Product.id == product_id).first()

    def find_product_by_code(self, code: str) -> Optional[Product]:
        return self.db.query(Product).filter(Product.external_code == code).first()

    # ===== Coupons =====

    def find_unused_coupon(self, code: str) -> Optional[Coupon]:
        return (
            self.db.query(Coupon)
            .filter(Coupon.code == code, Coupon.used == False)  # noqa: E712
            .first()
        )

    def consume_coupon(self, coupon_id: str, user_id: str) -> bool:
        """
        Mark a coupon used. The UPDATE is conditional on used = false, so of two
        racing checkouts only one gets True.
        """
        result = self.db.execute(
            update(Coupon)
            .where(Coupon.id == coupon_id, Coupon.used == False)  # noqa: E712
            .values(used=True, used_by=user_id, used_at=datetime.now(timezone.utc))
        )
        self.db.commit()
        return result.rowcount == 1

    def list_coupons(self) -> List[Coupon]:
        return self.db.query(Coupon).order_by(Coupon.created_at.desc()).all()

    def create_coupon(self, code: str, discount_percent: int) -> Optional[Coupon]:
        """Returns None when the code already exists."""
        coupon = Coupon(code=code, discount_percent=discount_percent, used=False)
        self.db.add(coupon)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            return None
        self.db.refresh(coupon)
        return coupon

    def delete_coupon(self, coupon_id: str) -> bool:
        coupon = self.db.query(Coupon).filter(Coupon.id == coupon_id).first()
        if coupon is None:
            return False
        self.db.delete(coupon)
        self.db.commit()
        return True

    # ===== Users & roles =====

    def get_user(self, user_id: str) -> Optional[User]:
        return self.db.query(User).filter(User.id == user_id).first()

    def list_users(self, limit: int = 200) -> List[User]:
        return self.db.query(User).order_by(User.created_at.desc()).limit(limit).all()

    def find_user_by_email(self, email: str) -> Optional[User]:
        """Case-insensitive exact match over the whole user list."""
        wanted = (email or "").strip().lower()
        if not wanted:
            return None
        for user in self.db.query(User).all():
            if (user.email or "").lower() == wanted:
                return user
        return None

    def is_admin(self, user_id: str) -> bool:
        return (
            self.db.query(UserRole.id)
            .filter(UserRole.user_id == user_id, UserRole.role == ROLE_ADMIN)
            .first()
            is not None
        )

    def role_map(self) -> dict:
        roles = {}
        for user_id, role in self.db.query(UserRole.user_id, UserRole.role).all():
            if role == ROLE_ADMIN or user_id not in roles:
                roles[user_id] = role
        return roles

    def set_role(self, user_id: str, role: str) -> None:
        if role == ROLE_USER:
            self.db.query(UserRole).filter(
                UserRole.user_id == user_id, UserRole.role == ROLE_ADMIN
            ).delete(synchronize_session=False)
            self.db.commit()
            return

        if self.is_admin(user_id):
            return
        self.db.add(UserRole(user_id=user_id, role=ROLE_ADMIN))
        try:
            self.db.commit()
        except IntegrityError:
            # Granted concurrently
            self.db.rollback()


def _status_value(status) -> Optional[str]:
    if status is None:
        return None
    return status.value if isinstance(status, PurchaseStatus) else str(status)
