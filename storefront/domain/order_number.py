# storefront/domain/order_number.py
import secrets
import string
from datetime import datetime, timezone

_ALPHABET = string.ascii_uppercase + string.digits


def generate_order_number(prefix: str, now: datetime | None = None, suffix_length: int = 4) -> str:
    """
    Format: PREFIX-YYYYMMDD-XXXX, e.g. ZPS-20240115-A3B7.
    Not collision free, the unique index on orders.order_number has the last word.
    """
    now = now or datetime.now(timezone.utc)
    suffix = "".join(secrets.choice(_ALPHABET) for _ in range(suffix_length))
    return f"{prefix.upper()}-{now.strftime('%Y%m%d')}-{suffix}"
