"""Legacy game-statistics dump converter."""

__version__ = "0.4.0"
