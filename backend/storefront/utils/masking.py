def mask_email(email) -> str:
    """buyer@example.com -> bu***@example.com"""
    if not email or "@" not in str(email):
        return "***"
    local, _, domain = str(email).partition("@")
    return f"{local[:2]}***@{domain}"


def mask_token(value) -> str:
    if not value:
        return ""
    value = str(value)
    if len(value) <= 8:
        return "****"
    return f"{value[:4]}****{value[-4:]}"
