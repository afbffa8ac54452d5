"""
EventLens Backend — Application Package Initializer
====================================================

What: Marks the `eventlens` directory as a Python package.
Who:  Imported by uvicorn (`eventlens.main:app`), Alembic, and pytest.

Architecture Note:
    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │   Scan core (sessions, pipeline)    │  ← cooldown, cache, validation, reporting
    ├─────────────────────────────────────┤
    │   Services (catalog, activity)      │  ← event/stall CRUD, user activity
    ├─────────────────────────────────────┤
    │     Record store (SQLAlchemy)       │  ← events, stalls, user_activity
    └─────────────────────────────────────┘

    The scan core only talks to the record store through the `RecordStore`
    interface, so it can be exercised with an in-memory store in tests.
"""

__version__ = "1.0.0"
