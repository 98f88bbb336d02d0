"""
Briefcast

Personalized daily audio briefings built from a user's connected services.

Pipeline stages:
1. Aggregation - Mail, calendar, video, document and trend sources
2. Interests - Keyword persona from viewing history
3. Script - Two-voice narration per section
4. Audio - Multi-speaker speech synthesis and upload
5. Persistence - One briefing per user per day
"""

__version__ = "1.0.0"
