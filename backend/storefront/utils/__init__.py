"""
Utility modules
- jwt_handler: identity provider token decoding
- ip_utils: client IP extraction for rate limiting
- masking: log-safe renderings of e-mails and ids
"""
from storefront.utils.jwt_handler import create_access_token, decode_access_token
from storefront.utils.ip_utils import get_client_ip
from storefront.utils.masking import mask_email, mask_token

__all__ = [
    'create_access_token',
    'decode_access_token',
    'get_client_ip',
    'mask_email',
    'mask_token',
]
