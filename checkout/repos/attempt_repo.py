# checkout/repos/attempt_repo.py
from datetime import datetime, timezone
from typing import List

from sqlalchemy import select
from sqlalchemy.orm import Session

from checkout.data.models.attempt import SettlementAttemptModel
from checkout.domain.settlement import CheckoutState

OPEN_STATES = (
    CheckoutState.INTENT_REQUESTED.value,
    CheckoutState.AWAITING_EXTERNAL_CONFIRMATION.value,
)

ABANDONED = "ABANDONED"


class AttemptRepo:
    def __init__(self, db: Session):
        self.db = db

    def get(self, attempt_id: str) -> SettlementAttemptModel | None:
        return self.db.get(SettlementAttemptModel, attempt_id)

    def record(
        self,
        attempt_id: str,
        session_id: str,
        state: CheckoutState,
        intent_id: str | None = None,
        idempotency_token: str | None = None,
        total=None,
        error_code: str | None = None,
    ) -> SettlementAttemptModel:
        now = datetime.now(timezone.utc)
        attempt = self.get(attempt_id)

        if not attempt:
            attempt = SettlementAttemptModel(
                attempt_id=attempt_id,
                session_id=session_id,
                created_at=now,
            )
            self.db.add(attempt)

        attempt.state = state.value
        attempt.intent_id = intent_id or attempt.intent_id
        attempt.idempotency_token = idempotency_token or attempt.idempotency_token
        attempt.total = total if total is not None else attempt.total
        attempt.error_code = error_code
        attempt.updated_at = now

        self.db.commit()
        return attempt

    def list_stale(self, older_than: datetime) -> List[SettlementAttemptModel]:
        return list(
            self.db.execute(
                select(SettlementAttemptModel).where(
                    SettlementAttemptModel.state.in_(OPEN_STATES),
                    SettlementAttemptModel.updated_at < older_than,
                )
            ).scalars()
        )

    def mark_abandoned(self, attempt: SettlementAttemptModel) -> None:
        attempt.state = CheckoutState.FAILED.value
        attempt.error_code = ABANDONED
        attempt.updated_at = datetime.now(timezone.utc)
        self.db.add(attempt)
