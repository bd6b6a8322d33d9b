import logging
from typing import Optional


def configure_logging_if_needed(level: str = "INFO") -> None:
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(
            level=level,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )


def mask_token(value: Optional[str]) -> Optional[str]:
    """Masks a bearer credential for log output, keeping the last 4 chars."""
    if not value:
        return value
    if len(value) <= 6:
        return "****"
    return f"****{value[-4:]}"
