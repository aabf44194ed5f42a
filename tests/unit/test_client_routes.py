"""Unit tests for client routing."""

from codeduel.client.routes import BATTLE_PATH, LOBBY_PATH, Navigator, View, resolve_route


class TestResolveRoute:
    def test_known_paths(self):
        assert resolve_route("/") == View.LOBBY
        assert resolve_route(LOBBY_PATH) == View.LOBBY
        assert resolve_route(BATTLE_PATH) == View.BATTLE

    def test_query_hash_and_trailing_slash(self):
        assert resolve_route(f"{BATTLE_PATH}/?x=1") == View.BATTLE
        assert resolve_route(f"{LOBBY_PATH}#join") == View.LOBBY

    def test_unknown_path(self):
        assert resolve_route("/leaderboard") == View.NOT_FOUND


class TestNavigator:
    def test_navigate_carries_state(self):
        nav = Navigator()
        nav.navigate(BATTLE_PATH, {"room_code": "ABC123"})

        assert nav.view == View.BATTLE
        assert nav.location.state == {"room_code": "ABC123"}

    def test_back_restores_previous_location(self):
        nav = Navigator(LOBBY_PATH)
        nav.navigate(BATTLE_PATH)

        assert nav.back().view == View.LOBBY
        # The first entry is never popped
        assert nav.back().path == LOBBY_PATH
