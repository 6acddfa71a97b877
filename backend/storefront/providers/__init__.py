"""
Payment providers
- base: PaymentProvider capability and its value types
- mercadopago: preference / redirect processor with signed notifications
- paypal: order / capture processor
"""
from storefront.providers.base import (
    CallbackUrls,
    CheckoutIntent,
    Confirmation,
    IntentRequest,
    PaymentProvider,
    ProviderError,
    quantize_amount,
)
from storefront.providers.mercadopago import MercadoPagoProvider, MercadoPagoSignatureVerifier
from storefront.providers.paypal import OrderAlreadyCaptured, PayPalProvider

__all__ = [
    'CallbackUrls',
    'CheckoutIntent',
    'Confirmation',
    'IntentRequest',
    'PaymentProvider',
    'ProviderError',
    'quantize_amount',
    'MercadoPagoProvider',
    'MercadoPagoSignatureVerifier',
    'OrderAlreadyCaptured',
    'PayPalProvider',
]
