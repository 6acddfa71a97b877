"""
Admin operations: users and roles, purchase listing
"""
import logging
from typing import List, Optional, Tuple

from storefront.constants import ROLE_ADMIN, ROLE_USER
from storefront.errors import Errors
from storefront.models.purchase import Purchase, PurchaseStatus
from storefront.stores import PrivilegedStore

logger = logging.getLogger(__name__)

ASSIGNABLE_ROLES = (ROLE_ADMIN, ROLE_USER)
USER_LIST_LIMIT = 200


class AdminService:
    def __init__(self, store: PrivilegedStore) -> None:
        self.store = store

    def list_users(self) -> List[dict]:
        roles = self.store.role_map()
        return [
            {
                "id": user.id,
                "email": user.email,
                "created_at": user.created_at,
                "role": ROLE_ADMIN if roles.get(user.id) == ROLE_ADMIN else ROLE_USER,
            }
            for user in self.store.list_users(limit=USER_LIST_LIMIT)
        ]

    def set_role(self, acting_admin_id: str, user_id: Optional[str], role: Optional[str]) -> None:
        if not user_id or role not in ASSIGNABLE_ROLES:
            raise Errors.validation({"reason": "Invalid input"})
        if self.store.get_user(user_id) is None:
            raise Errors.not_found("user")
        self.store.set_role(user_id, role)
        logger.info(f"[Admin] {acting_admin_id} set role={role} for user={user_id}")

    def list_purchases(
        self, status: Optional[str], page: int, page_size: int
    ) -> Tuple[List[Purchase], int]:
        status_filter = None
        if status:
            try:
                status_filter = PurchaseStatus(status.lower())
            except ValueError:
                raise Errors.validation({"field": "status", "reason": "unknown status"})
        return self.store.list_purchases(
            status=status_filter, offset=(page - 1) * page_size, limit=page_size
        )
