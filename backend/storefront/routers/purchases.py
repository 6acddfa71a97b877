import logging

from fastapi import APIRouter, Depends

from storefront.dependencies import get_user_store
from storefront.schemas.purchases import MyPurchase, MyPurchaseList
from storefront.stores import UserScopedStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["purchases"])


@router.get("/purchases", response_model=MyPurchaseList)
def my_purchases(user_store: UserScopedStore = Depends(get_user_store)):
    """The caller's purchase rows, newest first."""
    rows = user_store.my_purchases()
    return MyPurchaseList(purchases=[MyPurchase.model_validate(row) for row in rows])
