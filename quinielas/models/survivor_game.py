import secrets
from datetime import datetime, timezone

from quinielas import db
from quinielas.utils.rounds import parse_rounds


class SurvivorGame(db.Model):
    __tablename__ = "survivor_games"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    owner_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    # League the game follows on the fixture provider
    league_name = db.Column(db.String(100))
    external_league_id = db.Column(db.String(20), nullable=False)
    external_season = db.Column(db.String(10), nullable=False)

    # Game rules
    lives = db.Column(db.Integer, nullable=False, default=1)
    rounds_selected = db.Column(db.JSON, nullable=False, default=list)

    # Code for easy joining
    join_code = db.Column(db.String(8), unique=True, nullable=False, index=True)

    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    owner = db.relationship("User", foreign_keys=[owner_id])
    participants = db.relationship(
        "SurvivorParticipant",
        backref="game",
        lazy="dynamic",
        cascade="all, delete-orphan",
    )
    picks = db.relationship(
        "SurvivorPick", backref="game", lazy="dynamic", cascade="all, delete-orphan"
    )

    __table_args__ = (
        db.CheckConstraint("lives >= 1", name="check_survivor_lives_positive"),
        db.Index("idx_survivor_game_owner", "owner_id"),
    )

    def __repr__(self):
        return f"<SurvivorGame {self.name}>"

    def __init__(self, **kwargs):
        super(SurvivorGame, self).__init__(**kwargs)
        if not self.join_code:
            self.join_code = self.generate_join_code()

    @staticmethod
    def generate_join_code():
        """Generate a unique 8-character join code"""
        while True:
            code = secrets.token_urlsafe(6)[:8].upper()
            if not SurvivorGame.query.filter_by(join_code=code).first():
                return code

    def get_rounds(self):
        """Configured rounds in game order"""
        return parse_rounds(self.rounds_selected)

    def add_participant(self, user_id):
        """Join a user to the game, returning the existing row on a second join"""
        from .survivor_participant import SurvivorParticipant

        participant = SurvivorParticipant.query.filter_by(
            survivor_game_id=self.id, user_id=user_id
        ).first()
        if participant:
            return participant

        participant = SurvivorParticipant(
            survivor_game_id=self.id,
            user_id=user_id,
            lives_remaining=self.lives,
        )
        db.session.add(participant)
        return participant

    def get_active_participants(self):
        """Participants not eliminated in storage"""
        from .survivor_participant import SurvivorParticipant

        return (
            self.participants.filter_by(is_eliminated=False)
            .order_by(SurvivorParticipant.user_id)
            .all()
        )

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "owner_id": self.owner_id,
            "league_name": self.league_name,
            "external_league_id": self.external_league_id,
            "external_season": self.external_season,
            "lives": self.lives,
            "rounds": [r.to_dict() for r in self.get_rounds()],
            "join_code": self.join_code,
            "participant_count": self.participants.count(),
        }
