from codeduel.api.routes import auth, challenges, rooms

__all__ = ["auth", "challenges", "rooms"]
