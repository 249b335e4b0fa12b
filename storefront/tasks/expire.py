# storefront/tasks/expire.py
import uuid
from datetime import datetime, timezone

from storefront.celery_worker import celery_app
from storefront.data.database import SessionLocal
from storefront.services.lock_service import LockService
from storefront.services.order_service import OrderService
from storefront.services.payment_gateway import StripeGateway
from storefront.utils.settings import CheckoutConfig, EXPIRE_SWEEP_INTERVAL_SECONDS
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

SWEEP_LOCK_KEY = "orders:expire:lock"


def run_expiry_sweep(db, gateway: StripeGateway, config: CheckoutConfig, lock_service: LockService) -> int | None:
    """One sweep under the distributed lock; None when another worker holds it."""
    owner = str(uuid.uuid4())
    if not lock_service.acquire(SWEEP_LOCK_KEY, owner, ttl=EXPIRE_SWEEP_INTERVAL_SECONDS):
        logger.info("Expiry sweep already running elsewhere, skipping")
        return None

    try:
        svc = OrderService(db, gateway=gateway, config=config)
        expired = svc.expire_stale_orders(datetime.now(timezone.utc))
        logger.info(f"Expired {expired} stale pending orders")
        return expired
    finally:
        lock_service.release(SWEEP_LOCK_KEY, owner)


@celery_app.task(name="storefront.tasks.expire.expire_pending_orders_task")
def expire_pending_orders_task():
    logger.info("Expire pending orders task started")

    db = SessionLocal()
    try:
        return run_expiry_sweep(
            db,
            gateway=StripeGateway.from_settings(),
            config=CheckoutConfig.from_settings(),
            lock_service=LockService(),
        )
    finally:
        db.close()
