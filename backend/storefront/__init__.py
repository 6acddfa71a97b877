"""
LiveFX storefront backend

Checkout, payment reconciliation and download delivery for the effects store.
"""
__version__ = "1.0.0"
