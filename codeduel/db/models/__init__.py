from codeduel.db.models.challenge import Challenge, CodeSubmission, Difficulty
from codeduel.db.models.demo_bot import DemoBot
from codeduel.db.models.room import ParticipantStatus, Room, RoomParticipant, RoomStatus
from codeduel.db.models.user import UserProfile

__all__ = [
    "UserProfile",
    "DemoBot",
    "Challenge",
    "CodeSubmission",
    "Difficulty",
    "Room",
    "RoomParticipant",
    "RoomStatus",
    "ParticipantStatus",
]
