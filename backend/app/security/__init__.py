# Security module
from app.security.auth import (
    get_password_hash, verify_password, create_access_token,
    get_current_user, get_principal, get_permission_provider,
    require_permission, require_role,
)

__all__ = [
    'get_password_hash', 'verify_password', 'create_access_token',
    'get_current_user', 'get_principal', 'get_permission_provider',
    'require_permission', 'require_role',
]
