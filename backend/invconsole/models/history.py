from __future__ import annotations

from ..extensions import db
from invconsole.time_utils import to_utc_z


class CommandHistory(db.Model):
    """One processed natural-language command and the envelope it produced."""
    __tablename__ = "command_history"
    __table_args__ = (
        db.Index("ix_command_history_user_created", "user_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(64), nullable=True)
    command = db.Column(db.Text, nullable=False)
    action = db.Column(db.String(40), nullable=True)
    success = db.Column(db.Boolean, nullable=False, default=True)
    result = db.Column(db.JSON, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "command": self.command,
            "action": self.action,
            "success": self.success,
            "result": self.result,
            "created_at": to_utc_z(self.created_at),
        }
