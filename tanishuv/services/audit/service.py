from typing import Any

from sqlalchemy.orm import Session

from tanishuv.models.audit_log import AuditLog


class AuditService:
    """
    Audit trail for events that need a human: unmatched payments, payout requests.
    Entries join the caller's unit of work; commit=True persists them on their own.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    def log(
        self,
        actor_type: str,
        actor_id: str | None,
        action: str,
        entity_type: str,
        entity_id: str | None,
        payload: dict[str, Any] | None = None,
        commit: bool = False,
    ) -> AuditLog:
        entry = AuditLog(
            actor_type=actor_type,
            actor_id=actor_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            payload=payload or {},
        )
        self.db.add(entry)
        if commit:
            self.db.commit()
            self.db.refresh(entry)
        else:
            self.db.flush()
        return entry
