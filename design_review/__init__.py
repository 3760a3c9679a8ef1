"""Design Review Copilot: procedure-grounded review of design changes."""

__version__ = "1.0.0"
