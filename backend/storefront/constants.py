"""
Application Constants
Storefront-wide fixed values
"""

# Catalog prices are stored in this currency
REFERENCE_CURRENCY = "BRL"

# Separator used inside a provider reference string ("id1,id2")
REFERENCE_DELIMITER = ","

# Longest reference both processors accept (PayPal reference_id, MP external_reference)
MAX_REFERENCE_LENGTH = 256

# Redirect markers appended to SITE_URL after hosted checkout
PURCHASE_RETURN_SUCCESS = "success"
PURCHASE_RETURN_FAILURE = "failure"
PURCHASE_RETURN_PENDING = "pending"

# Mercado Pago notification kinds handled by /mp-webhook
MP_PAYMENT_EVENTS = frozenset({"payment", "payment.created", "payment.updated"})

# Payt (legacy postback) status vocabulary -> purchase status
PAYT_STATUS_MAP = {
    "approved": "completed",
    "paid": "completed",
    "completed": "completed",
    "refunded": "refunded",
    "cancelled": "cancelled",
    "canceled": "cancelled",
    "pending": "pending",
    "waiting_payment": "pending",
}

# Google Drive delivery
DRIVE_SCOPE = "https://www.googleapis.com/auth/drive.readonly"
DOWNLOAD_CHUNK_SIZE = 64 * 1024

MIME_TO_EXTENSION = {
    "video/webm": ".webm",
    "video/mp4": ".mp4",
    "video/quicktime": ".mov",
    "video/x-msvideo": ".avi",
    "video/x-matroska": ".mkv",
    "audio/mpeg": ".mp3",
    "audio/wav": ".wav",
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/gif": ".gif",
    "application/zip": ".zip",
    "application/x-rar-compressed": ".rar",
    "application/pdf": ".pdf",
}

# Admin re-downloads trust the Drive file extension over the served content type
EXTENSION_TO_MIME = {
    ".webm": "video/webm",
    ".mp4": "video/mp4",
    ".mov": "video/quicktime",
    ".zip": "application/zip",
    ".rar": "application/x-rar-compressed",
}

# Roles
ROLE_ADMIN = "admin"
ROLE_USER = "user"

# Rate Limiting
CHECKOUT_RATE_LIMIT = "10/minute"
CAPTURE_RATE_LIMIT = "30/minute"
WEBHOOK_RATE_LIMIT = "100/minute"
DOWNLOAD_RATE_LIMIT = "30/minute"
ADMIN_RATE_LIMIT = "600/hour"

# Admin listing
ADMIN_PAGE_SIZE_DEFAULT = 50
ADMIN_PAGE_SIZE_MAX = 200
