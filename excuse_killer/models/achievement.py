"""Achievement models for gamification"""
from pydantic import BaseModel
from typing import Optional


class Achievement(BaseModel):
    """Achievement definition"""
    id: str
    name: str
    description: str
    icon: str
    unlock_condition: str
    auto_unlock: bool = True  # False for achievements no rule can award yet


class AchievementStatus(BaseModel):
    """Achievement with the user's unlock state, for listings"""
    id: str
    name: str
    description: str
    icon: str
    unlock_condition: str
    unlocked: bool
    unlocked_at: Optional[str] = None
