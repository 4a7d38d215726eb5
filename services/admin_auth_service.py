"""
AdminAuthService - shared-password authentication for the admin API

There are no admin accounts: the configured ADMIN_PASSWORD is checked on
login and the same value is stored in an httpOnly cookie that every admin
request presents again.
"""

import hmac
from typing import Optional

from logging_config import get_logger, security_logger
from services.common.result import Result
from services.enums import ErrorCode

logger = get_logger(__name__)


class AdminAuthService:
    """Validates the admin password and describes the auth cookie"""

    def __init__(self,
                 admin_password: Optional[str],
                 cookie_name: str = 'admin_auth',
                 cookie_max_age: int = 60 * 60 * 24,
                 cookie_secure: bool = False):
        self.admin_password = admin_password
        self.cookie_name = cookie_name
        self.cookie_max_age = cookie_max_age
        self.cookie_secure = cookie_secure

    def validate_password(self, password: Optional[str]) -> bool:
        """Constant-time comparison against ADMIN_PASSWORD; False when unset."""
        if not self.admin_password:
            logger.error("ADMIN_PASSWORD not configured")
            return False
        if not password:
            return False
        return hmac.compare_digest(password.encode('utf-8'), self.admin_password.encode('utf-8'))

    def login(self, password: Optional[str], ip_address: Optional[str] = None) -> Result[str]:
        """
        Check a login attempt.

        Returns:
            Result whose data is the cookie value to set
        """
        if not password:
            security_logger.log_authentication_attempt(False, ip_address, reason='missing_password')
            return Result.failure("Password is required", code=ErrorCode.VALIDATION_ERROR)

        if not self.validate_password(password):
            security_logger.log_authentication_attempt(False, ip_address, reason='invalid_password')
            return Result.failure("Invalid password", code=ErrorCode.UNAUTHORIZED)

        security_logger.log_authentication_attempt(True, ip_address)
        return Result.success(password)

    def is_authenticated(self, cookie_value: Optional[str]) -> bool:
        return self.validate_password(cookie_value)

    def cookie_options(self) -> dict:
        """Keyword arguments for Response.set_cookie."""
        return {
            'max_age': self.cookie_max_age,
            'httponly': True,
            'secure': self.cookie_secure,
            'samesite': 'Strict',
        }
