# storefront/api/routers/webhooks.py
from fastapi import APIRouter, Depends, HTTPException, Header, Request
from starlette.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from storefront.api.deps import get_gateway, get_notifications
from storefront.data.database import get_db
from storefront.domain.errors import SignatureVerificationError, ValidationError
from storefront.domain.schemas import WebhookAck
from storefront.services.notification_service import NotificationService
from storefront.services.payment_gateway import StripeGateway
from storefront.services.webhook_service import PaymentWebhookReconciler
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post("/payment", response_model=WebhookAck)
async def payment_webhook(
    request: Request,
    stripe_signature: str | None = Header(None),
    db: Session = Depends(get_db),
    gateway: StripeGateway = Depends(get_gateway),
    notifications: NotificationService = Depends(get_notifications),
):
    """
    Signed gateway callback. Bad signatures are rejected with 400; once the
    signature is valid every outcome is acknowledged so the gateway stops
    redelivering.
    """
    payload = await request.body()
    reconciler = PaymentWebhookReconciler(db, gateway=gateway, notifications=notifications)

    try:
        return await run_in_threadpool(reconciler.handle, payload, stripe_signature)
    except SignatureVerificationError as e:
        logger.warning(f"Rejected webhook: {e.message}")
        raise HTTPException(status_code=e.status_code, detail=e.detail())
    except ValidationError as e:
        logger.warning(f"Malformed webhook: {e.message}")
        raise HTTPException(status_code=e.status_code, detail=e.detail())
    except Exception:
        await run_in_threadpool(db.rollback)
        logger.exception("Webhook processing failed, acknowledged to stop redelivery")
        return {"received": True}
