"""
BizzyLink Backend: Application Package
=======================================

Community website API for a Minecraft server: accounts, a forum with
reputation and vouches, friends and followers, an admin dashboard, and
linking website accounts to in-game players.

Layers:
    ┌─────────────────────────────────────┐
    │      Routes + Dependencies (HTTP)   │  ← status codes, auth, cookies
    ├─────────────────────────────────────┤
    │         Services (Business Rules)   │  ← counters, privacy, linking
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │        Database (Persistence)       │  ← async sessions, Alembic
    └─────────────────────────────────────┘
"""

__version__ = "1.0.0"
