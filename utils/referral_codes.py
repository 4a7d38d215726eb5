"""
Referral code, link and identifier generation.

Codes are composed from the wall clock (base36 milliseconds) plus a random
suffix, so concurrent workers can mint them without a central allocator.
The database unique constraint on referral_code remains the final arbiter.
"""

import re
import secrets
import string
import time
from typing import Optional

BASE36_ALPHABET = string.digits + string.ascii_lowercase

EMAIL_PATTERN = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')
SLUG_INVALID_CHARS = re.compile(r'[^a-z0-9-]')


def to_base36(number: int) -> str:
    """Encode a non-negative integer in lowercase base36."""
    if number < 0:
        raise ValueError("Cannot encode negative numbers")
    if number == 0:
        return '0'

    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(BASE36_ALPHABET[remainder])
    return ''.join(reversed(digits))


def _random_base36(length: int) -> str:
    return ''.join(secrets.choice(BASE36_ALPHABET) for _ in range(length))


def _epoch_millis() -> int:
    return int(time.time() * 1000)


def generate_referral_code() -> str:
    """
    Generate an opaque, URL-safe referral code.

    Returns:
        Code of the form ``ref_<base36 ms timestamp>_<6 random base36 chars>``
    """
    return f"ref_{to_base36(_epoch_millis())}_{_random_base36(6)}"


def generate_referral_id() -> str:
    """Generate a referral primary key: ``ref_<ms timestamp>_<4 random chars>``."""
    return f"ref_{_epoch_millis()}_{_random_base36(4)}"


def generate_referral_link(code: str, campaign_slug: str, base_url: str) -> str:
    """
    Compose the shareable link for a referral code.

    Args:
        code: Referral code
        campaign_slug: Slug of the campaign the referrer registered for
        base_url: Public base URL of the site

    Returns:
        Absolute URL ``{base_url}/{campaign_slug}/refer?ref={code}``
    """
    return f"{base_url.rstrip('/')}/{campaign_slug}/refer?ref={code}"


def sanitize_slug(value: Optional[str]) -> str:
    """Lowercase a slug and replace anything outside [a-z0-9-] with '-'."""
    if not isinstance(value, str):
        return ''
    return SLUG_INVALID_CHARS.sub('-', value.strip().lower())


def normalize_email(value: Optional[str]) -> str:
    """Trim and lowercase an email address; non-text values normalize to ''."""
    if not isinstance(value, str):
        return ''
    return value.strip().lower()


def is_valid_email(value: Optional[str]) -> bool:
    """Basic local@domain.tld shape check, no whitespace allowed."""
    if not isinstance(value, str):
        return False
    return EMAIL_PATTERN.match(value.strip()) is not None


def split_full_name(name: Optional[str]) -> tuple:
    """Split 'First Middle Last' into ('First', 'Middle Last') for CRM forms."""
    parts = (name or '').strip().split(' ')
    first = parts[0] if parts else ''
    last = ' '.join(part for part in parts[1:] if part)
    return first, last
