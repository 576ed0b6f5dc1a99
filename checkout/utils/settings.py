# checkout/utils/settings.py
import os
from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./checkout.db")
REDIS_URL = os.getenv("REDIS_URL", "redis://redis:6379/0")
CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", "redis://redis:6379/1")
CELERY_RESULT_BACKEND = os.getenv("CELERY_RESULT_BACKEND", "redis://redis:6379/2")

PAYMENT_API_URL = os.getenv("PAYMENT_API_URL", "http://payment-api:8000/api")
CATALOG_API_URL = os.getenv("CATALOG_API_URL", "http://catalog-service:8000")
HTTP_TIMEOUT_SECONDS = float(os.getenv("HTTP_TIMEOUT_SECONDS", 15))

#service credentials for the payment authority, refreshed on 401
PAYMENT_API_TOKEN = os.getenv("PAYMENT_API_TOKEN")
PAYMENT_API_REFRESH_TOKEN = os.getenv("PAYMENT_API_REFRESH_TOKEN")

RECONCILE_MAX_ATTEMPTS = int(os.getenv("RECONCILE_MAX_ATTEMPTS", 4))
INTENT_TTL_SECONDS = int(os.getenv("INTENT_TTL_SECONDS", 30*60))
CHECKOUT_LOCK_TTL_SECONDS = int(os.getenv("CHECKOUT_LOCK_TTL_SECONDS", 30*60))

DEFAULT_CURRENCY = os.getenv("DEFAULT_CURRENCY", "USD")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
