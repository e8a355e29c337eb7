from squadpicks import db  # noqa: F401 - imported for model imports

from .game import Game
from .game_line import GameLine
from .pick import Pick
from .pick_set import PickSet
from .squad import Squad
from .squad_member import SquadMember
from .user import User

__all__ = [
    "User",
    "Squad",
    "SquadMember",
    "Game",
    "GameLine",
    "PickSet",
    "Pick",
]
