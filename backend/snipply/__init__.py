"""
Snipply Backend — Application Package
======================================

What: HTTP API for a code-snippet sharing site (accounts, HTML/CSS/JS
      snippets, likes, views, follows, notifications).
Who:  Imported by uvicorn (`snipply.main:app`), Alembic and pytest.

Architecture Note:
    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns, session gates
    ├─────────────────────────────────────┤
    │         Services (Business Logic)   │  ← visibility, ownership, fan-out
    ├─────────────────────────────────────┤
    │     Storage (one contract, two      │  ← MemoryStorage / DatabaseStorage
    │           implementations)          │
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    └─────────────────────────────────────┘
"""

__version__ = "1.0.0"
