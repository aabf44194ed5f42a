"""Client route table and in-memory navigation."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class View(str, Enum):
    LOBBY = "lobby"
    BATTLE = "battle"
    NOT_FOUND = "not_found"


LOBBY_PATH = "/room-creation-join"
BATTLE_PATH = "/live-coding-battle"

ROUTES: dict[str, View] = {
    "/": View.LOBBY,
    LOBBY_PATH: View.LOBBY,
    BATTLE_PATH: View.BATTLE,
}


def resolve_route(path: str) -> View:
    """Map a path to the view that renders it."""
    path = path.split("?", 1)[0].split("#", 1)[0]
    if len(path) > 1:
        path = path.rstrip("/")
    return ROUTES.get(path or "/", View.NOT_FOUND)


@dataclass
class Location:
    path: str
    # Navigation state, e.g. {"room_data": {...}} or {"room_code": "ABC123"}
    state: dict[str, Any] = field(default_factory=dict)

    @property
    def view(self) -> View:
        return resolve_route(self.path)


class Navigator:
    """History stack. Navigation state lives only in memory."""

    def __init__(self, path: str = "/"):
        self.history: list[Location] = [Location(path)]

    @property
    def location(self) -> Location:
        return self.history[-1]

    @property
    def view(self) -> View:
        return self.location.view

    def navigate(self, path: str, state: Optional[dict[str, Any]] = None) -> Location:
        location = Location(path, dict(state or {}))
        self.history.append(location)
        return location

    def back(self) -> Location:
        if len(self.history) > 1:
            self.history.pop()
        return self.location
