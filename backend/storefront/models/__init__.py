"""
Database models
- User / UserRole: identity mirror and admin role rows
- Product / Bundle / BundleProduct: catalog (read-only to checkout)
- Purchase / PurchaseStatusHistory: entitlement records and their transitions
- Coupon: single-use discount codes
"""
from storefront.models.user import User, UserRole
from storefront.models.catalog import Product, Bundle, BundleProduct
from storefront.models.purchase import Purchase, PurchaseStatus, PurchaseStatusHistory
from storefront.models.coupon import Coupon

__all__ = [
    'User',
    'UserRole',
    'Product',
    'Bundle',
    'BundleProduct',
    'Purchase',
    'PurchaseStatus',
    'PurchaseStatusHistory',
    'Coupon',
]
