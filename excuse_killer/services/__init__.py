"""
Service Layer Package

Business logic between the presentation layer (the command line, or any
other front end) and the key-value store.

Core Services:
- ChallengeService: challenge lifecycle (create, start, complete, abandon)
- GamificationService: streak, XP, title and achievements
- ChallengeTimer: wall-clock countdown with reload recovery
"""

from excuse_killer.services.container import ServiceContainer, bootstrap
from excuse_killer.services.challenge_service import ChallengeService, CompletionResult, AbandonResult
from excuse_killer.services.gamification_service import GamificationService
from excuse_killer.services.timer import ChallengeTimer, CompletionPrompt, TimerState

__all__ = [
    "ServiceContainer",
    "bootstrap",
    "ChallengeService",
    "CompletionResult",
    "AbandonResult",
    "GamificationService",
    "ChallengeTimer",
    "CompletionPrompt",
    "TimerState",
]
