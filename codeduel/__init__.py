"""CodeDuel Arena - real-time head-to-head coding battles."""

__version__ = "0.1.0"
