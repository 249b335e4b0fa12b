# storefront/api/deps.py
import uuid
from functools import lru_cache

from fastapi import Depends, Header, HTTPException, Query, Request, Response
from sqlalchemy.orm import Session

from storefront.data.database import get_db
from storefront.data.models.user import UserModel
from storefront.domain.identity import Identity
from storefront.repos.user_repo import UserRepo
from storefront.services.notification_service import NotificationService
from storefront.services.payment_gateway import StripeGateway
from storefront.utils.settings import CheckoutConfig

CART_SESSION_COOKIE = "cart_session"
ADMIN_ROLE = "ADMIN"


@lru_cache
def get_config() -> CheckoutConfig:
    return CheckoutConfig.from_settings()


@lru_cache
def get_gateway() -> StripeGateway:
    return StripeGateway.from_settings()


def get_notifications() -> NotificationService:
    return NotificationService()


def _load_user(db: Session, user_id: int) -> UserModel:
    user = UserRepo(db).get_user(user_id)
    if not user:
        raise HTTPException(status_code=403, detail={"error": "Unknown user", "user_id": user_id})
    return user


def get_current_user(
    user_id: int | None = Query(None),
    db: Session = Depends(get_db),
) -> UserModel | None:
    """Optional caller; token issuance is outside this service, the id comes as a query param."""
    if user_id is None:
        return None
    return _load_user(db, user_id)


def require_user(user: UserModel | None = Depends(get_current_user)) -> UserModel:
    if user is None:
        raise HTTPException(status_code=401, detail={"error": "Authentication required"})
    return user


def require_admin(user: UserModel = Depends(require_user)) -> UserModel:
    if user.role != ADMIN_ROLE:
        raise HTTPException(status_code=403, detail={"error": "Admin access required"})
    return user


def get_identity(
    request: Request,
    response: Response,
    user: UserModel | None = Depends(get_current_user),
    x_cart_session: str | None = Header(None),
) -> Identity:
    """
    Cart owner for the request:
    - user_id query param -> authenticated cart
    - cart_session cookie or X-Cart-Session header -> guest cart
    - neither -> new guest session, echoed back as a cookie
    """
    if user is not None:
        return Identity(user_id=user.id)

    session_id = request.cookies.get(CART_SESSION_COOKIE) or x_cart_session
    if not session_id:
        session_id = str(uuid.uuid4())
        response.set_cookie(CART_SESSION_COOKIE, session_id, httponly=True, samesite="lax")
    return Identity(session_id=session_id)
