from quinielas import db  # noqa: F401 - imported for model imports

from .survivor_game import SurvivorGame
from .survivor_participant import SurvivorParticipant
from .survivor_pick import SurvivorPick
from .user import User

__all__ = [
    "User",
    "SurvivorGame",
    "SurvivorParticipant",
    "SurvivorPick",
]
