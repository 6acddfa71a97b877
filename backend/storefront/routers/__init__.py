from storefront.routers import checkout, webhooks, downloads, purchases, admin

__all__ = ["checkout", "webhooks", "downloads", "purchases", "admin"]
