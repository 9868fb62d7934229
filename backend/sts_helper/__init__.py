"""stS Helper - validator staking and unstaking recommendations."""

__version__ = "1.0.0"
