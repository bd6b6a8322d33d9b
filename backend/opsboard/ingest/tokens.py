import secrets

from opsboard.ingest.fingerprint import sha256_hex

TOKEN_PREFIX_LEN = 6


def new_webhook_token() -> tuple[str, str, str]:
    """Returns (plaintext token, sha256 hex hash, display prefix)."""
    token = secrets.token_urlsafe(32)
    return token, sha256_hex(token), token[:TOKEN_PREFIX_LEN]
