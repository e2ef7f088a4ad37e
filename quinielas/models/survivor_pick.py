from datetime import datetime, timezone

from quinielas import db


class SurvivorPick(db.Model):
    __tablename__ = "survivor_picks"

    id = db.Column(db.Integer, primary_key=True)

    # Pick identification
    survivor_game_id = db.Column(
        db.Integer, db.ForeignKey("survivor_games.id"), nullable=False
    )
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    external_round = db.Column(db.String(100), nullable=False)

    # Pick details, as identified by the fixture provider
    external_fixture_id = db.Column(db.String(20), nullable=False)
    external_picked_team_id = db.Column(db.String(20), nullable=False)
    external_picked_team_name = db.Column(db.String(100), nullable=True)

    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    user = db.relationship("User", foreign_keys=[user_id])

    __table_args__ = (
        db.UniqueConstraint(
            "survivor_game_id", "user_id", "external_round",
            name="unique_survivor_pick_round",
        ),
        db.UniqueConstraint(
            "survivor_game_id", "user_id", "external_picked_team_id",
            name="unique_survivor_pick_team",
        ),
        db.Index("idx_survivor_pick_game_user", "survivor_game_id", "user_id"),
    )

    def __repr__(self):
        return (
            f"<SurvivorPick user_id={self.user_id} round={self.external_round} "
            f"team={self.external_picked_team_name or self.external_picked_team_id}>"
        )

    def to_pick_data(self):
        from quinielas.services.survivor_status import PickData

        return PickData(
            round_name=self.external_round,
            fixture_id=self.external_fixture_id,
            team_id=self.external_picked_team_id,
            team_name=self.external_picked_team_name,
        )

    def to_dict(self):
        return {
            "id": self.id,
            "survivor_game_id": self.survivor_game_id,
            "user_id": self.user_id,
            "round": self.external_round,
            "fixture_id": self.external_fixture_id,
            "team_id": self.external_picked_team_id,
            "team_name": self.external_picked_team_name,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
