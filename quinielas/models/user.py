from datetime import datetime, timezone

from quinielas import db


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100))
    email = db.Column(db.String(120), unique=True, nullable=False, index=True)
    image = db.Column(db.String(500))

    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    # Relationships
    participations = db.relationship(
        "SurvivorParticipant", backref="user", lazy="dynamic"
    )

    def __repr__(self):
        return f"<User {self.email}>"

    @property
    def display_name(self):
        return self.name or self.email.split("@")[0]

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.display_name,
            "email": self.email,
            "image": self.image,
        }
