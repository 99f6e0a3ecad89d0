from __future__ import annotations

from ..extensions import db
from bizledger.time_utils import to_utc_z


class IdentifierSequence(db.Model):
    """
    Atomic per-prefix, per-year identifier counters.

    Backs human-readable codes such as EXP-2024-003. The counter only ever
    moves forward, so a number freed by deleting its record is never handed
    out again.
    """
    __tablename__ = "identifier_sequences"
    __table_args__ = (
        db.UniqueConstraint("prefix", "year", name="uq_identifier_sequences_prefix_year"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    prefix = db.Column(db.String(16), nullable=False)
    year = db.Column(db.Integer, nullable=False)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "prefix": self.prefix,
            "year": self.year,
            "next_number": self.next_number,
            "updated_at": to_utc_z(self.updated_at),
        }
