import logging
from datetime import datetime, timezone

from quinielas import db

logger = logging.getLogger(__name__)


class SurvivorParticipant(db.Model):
    __tablename__ = "survivor_participants"

    id = db.Column(db.Integer, primary_key=True)
    survivor_game_id = db.Column(
        db.Integer, db.ForeignKey("survivor_games.id"), nullable=False
    )
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    # Denormalized copy of the computed status, refreshed by the elimination job
    lives_remaining = db.Column(db.Integer, nullable=False)
    is_eliminated = db.Column(db.Boolean, nullable=False, default=False)
    eliminated_at_round = db.Column(db.String(100))

    joined_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        db.UniqueConstraint(
            "survivor_game_id", "user_id", name="unique_survivor_participant"
        ),
        db.Index("idx_survivor_participant_game", "survivor_game_id"),
        db.Index("idx_survivor_participant_eliminated", "is_eliminated"),
    )

    def __repr__(self):
        return f"<SurvivorParticipant game={self.survivor_game_id} user={self.user_id}>"

    def differs_from(self, status):
        """True when the stored copy disagrees with a computed SurvivorStatus"""
        return (
            self.lives_remaining != max(0, status.lives_remaining)
            or bool(self.is_eliminated) != status.is_eliminated
            or self.eliminated_at_round != status.eliminated_at_round
        )

    def apply_status(self, status):
        """
        Copy a computed status onto the row.

        Elimination is one-way: a computed status that would bring an
        eliminated participant back is ignored.

        Returns:
            bool: True if the row changed
        """
        if self.is_eliminated and not status.is_eliminated:
            logger.warning(
                f"Refusing to revert elimination of user {self.user_id} "
                f"in survivor game {self.survivor_game_id}"
            )
            return False

        if not self.differs_from(status):
            return False

        self.lives_remaining = max(0, status.lives_remaining)
        self.is_eliminated = status.is_eliminated
        self.eliminated_at_round = status.eliminated_at_round
        self.updated_at = datetime.now(timezone.utc)
        return True

    def to_dict(self):
        return {
            "survivor_game_id": self.survivor_game_id,
            "user_id": self.user_id,
            "lives_remaining": self.lives_remaining,
            "is_eliminated": self.is_eliminated,
            "eliminated_at_round": self.eliminated_at_round,
            "joined_at": self.joined_at.isoformat() if self.joined_at else None,
        }
