"""Random codes handed to customers and their verification."""

import hmac
import secrets
import string

OTP_LENGTH = 6
REFERRAL_CODE_LENGTH = 8

_REFERRAL_ALPHABET = string.ascii_uppercase + string.digits


def generate_otp() -> str:
    """Generate a 6-digit numeric delivery code (leading zeros kept)."""
    return f"{secrets.randbelow(10**OTP_LENGTH):0{OTP_LENGTH}d}"


def otp_matches(stored: str, supplied: str) -> bool:
    """Exact string comparison in constant time."""
    return hmac.compare_digest(stored.encode(), supplied.encode())


def generate_referral_code(length: int = REFERRAL_CODE_LENGTH) -> str:
    """Generate an uppercase alphanumeric referral code."""
    return "".join(secrets.choice(_REFERRAL_ALPHABET) for _ in range(length))
