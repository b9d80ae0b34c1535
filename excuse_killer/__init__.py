"""Excuse Killer - challenge lifecycle and gamification engine"""

__version__ = "1.0.0"
