# checkout/services/auth_session.py
import threading

import requests

from checkout.domain.errors import AuthorityRejected
from checkout.utils.settings import PAYMENT_API_URL, HTTP_TIMEOUT_SECONDS
from checkout.utils.logging import get_logger

logger = get_logger(__name__)


class AuthSession:
    """
    Bearer tokens for the payment authority.

    refresh() is single-flight: callers that saw the same stale token wait on
    one lock, the first one does the POST, the rest pick up its result.
    """

    def __init__(
        self,
        access_token: str | None = None,
        refresh_token: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
    ):
        self.base_url = (base_url or PAYMENT_API_URL).rstrip("/")
        self.timeout = timeout or HTTP_TIMEOUT_SECONDS
        self._access_token = access_token
        self._refresh_token = refresh_token
        self._lock = threading.Lock()
        self.refresh_count = 0

    @property
    def access_token(self) -> str | None:
        return self._access_token

    def headers(self) -> dict:
        if not self._access_token:
            return {}
        return {"Authorization": f"Bearer {self._access_token}"}

    def refresh(self, stale_token: str | None) -> str:
        with self._lock:
            if self._access_token and self._access_token != stale_token:
                #someone else refreshed while we were waiting
                return self._access_token

            if not self._refresh_token:
                raise AuthorityRejected("No refresh token available", status_code=401)

            url = f"{self.base_url}/auth/refresh-token"
            logger.info(f"AuthSession POST {url}")

            resp = requests.post(
                url,
                json={"refreshToken": self._refresh_token},
                timeout=self.timeout,
            )
            body = resp.json() if resp.content else {}

            if resp.status_code >= 400 or not body.get("success"):
                logger.error(f"Token refresh failed with status {resp.status_code}")
                self._access_token = None
                raise AuthorityRejected("Token refresh failed", status_code=resp.status_code)

            self._access_token = body["accessToken"]
            self._refresh_token = body.get("refreshToken") or self._refresh_token
            self.refresh_count += 1
            return self._access_token
