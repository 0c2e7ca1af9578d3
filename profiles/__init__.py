"""
Profiles module - developer profile and onboarding phase.

This module handles:
- UserProfile entity and setup phase progression
- Notification settings
"""
