"""Python client for CodeDuel Arena: auth state, lobby and live battle views."""

from codeduel.client.api import CodeDuelClient
from codeduel.client.auth import AuthContext
from codeduel.client.battle import BattleSession
from codeduel.client.lobby import Lobby
from codeduel.client.routes import Navigator
from codeduel.client.services import ChallengeService, RoomService

__all__ = [
    "CodeDuelClient",
    "AuthContext",
    "BattleSession",
    "Lobby",
    "Navigator",
    "ChallengeService",
    "RoomService",
]
