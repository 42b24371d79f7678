"""
Database Module - SQLAlchemy persistence for the progression engine.

Components:
- models: ORM rows for objectives, sprints, skills, reviews and quizzes
- database: Async engine, session factory and transactional scope
- repository: SqlAlchemyProgressRepository implementing ProgressRepository
"""

from sprintwise.db.database import (
    async_session_scope,
    create_engine_for,
    create_session_factory,
    dispose_engine,
    get_async_engine,
    get_session_factory,
    init_db,
)
from sprintwise.db.repository import SqlAlchemyProgressRepository

__all__ = [
    "SqlAlchemyProgressRepository",
    "async_session_scope",
    "create_engine_for",
    "create_session_factory",
    "dispose_engine",
    "get_async_engine",
    "get_session_factory",
    "init_db",
]
