"""Storage models and queries for challenges, teams, players and catalogue data."""

__version__ = "0.1.0"