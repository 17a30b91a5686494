from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow

FAILURE_OPEN = "failed"
FAILURE_REPLAYED = "replayed"


class EventFailure(db.Model):
    """
    Dead letter for deferred writes that failed after retries.

    The caller was already acknowledged, so this row (plus the app log) is the
    only trace of the lost write. `flask events replay` re-applies payload.
    """
    __tablename__ = "event_failures"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    process_id = db.Column(db.String(36), nullable=False, unique=True, index=True)
    event_type = db.Column(db.String(64), nullable=False, index=True)
    payload = db.Column(db.JSON, nullable=False)
    sequence_id = db.Column(db.BigInteger, nullable=True)
    error = db.Column(db.Text, nullable=False)
    status = db.Column(db.String(16), nullable=False, default=FAILURE_OPEN, index=True)
    attempts = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    replayed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "process_id": self.process_id,
            "event_type": self.event_type,
            "payload": self.payload,
            "sequence_id": self.sequence_id,
            "error": self.error,
            "status": self.status,
            "attempts": self.attempts,
            "created_at": to_utc_z(self.created_at),
            "replayed_at": to_utc_z(self.replayed_at) if self.replayed_at else None,
        }
