# checkout/api/deps.py
from functools import lru_cache

from fastapi import Depends
from sqlalchemy.orm import Session

from checkout.data.database import get_db
from checkout.services.auth_session import AuthSession
from checkout.services.authority_client import PaymentAuthorityClient
from checkout.services.catalog_client import CatalogClient
from checkout.services.checkout_service import CheckoutService, CoordinatorRegistry
from checkout.services.lock_service import LockService
from checkout.services.notification_service import NotificationService
from checkout.services.settlement_coordinator import SettlementCoordinator
from checkout.utils.settings import PAYMENT_API_REFRESH_TOKEN, PAYMENT_API_TOKEN


@lru_cache
def get_authority() -> PaymentAuthorityClient:
    return PaymentAuthorityClient(
        auth=AuthSession(
            access_token=PAYMENT_API_TOKEN,
            refresh_token=PAYMENT_API_REFRESH_TOKEN,
        )
    )


@lru_cache
def get_catalog() -> CatalogClient:
    return CatalogClient()


@lru_cache
def get_lock_service() -> LockService:
    return LockService()


@lru_cache
def get_registry() -> CoordinatorRegistry:
    return CoordinatorRegistry(
        lambda session_id: SettlementCoordinator(
            authority=get_authority(),
            catalog=get_catalog(),
            session_id=session_id,
        )
    )


def get_service(db: Session = Depends(get_db)) -> CheckoutService:
    return CheckoutService(
        db=db,
        catalog=get_catalog(),
        authority=get_authority(),
        registry=get_registry(),
        lock_service=get_lock_service(),
        notifications=NotificationService(),
    )
