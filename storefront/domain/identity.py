# storefront/domain/identity.py
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Identity:
    """Cart owner: an authenticated user or an anonymous session, never both."""

    user_id: Optional[int] = None
    session_id: Optional[str] = None

    def __post_init__(self):
        if (self.user_id is None) == (self.session_id is None):
            raise ValueError("Identity needs exactly one of user_id / session_id")

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None
