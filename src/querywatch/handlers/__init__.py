"""Source handlers. Each class is the factory for its source family."""

from .asyncpg_logger import AsyncpgHandler, AsyncpgQuery
from .base import Accept, Handler, QueryHandler, is_transaction_marker
from .logger_bridge import LoggedStatement, LoggingHandler
from .mongo_commands import MongoCommand, MongoCommandHandler
from .sqlalchemy_events import CursorExecution, SQLAlchemyHandler

__all__ = [
    "Accept",
    "AsyncpgHandler",
    "AsyncpgQuery",
    "CursorExecution",
    "Handler",
    "LoggedStatement",
    "LoggingHandler",
    "MongoCommand",
    "MongoCommandHandler",
    "QueryHandler",
    "SQLAlchemyHandler",
    "is_transaction_marker",
]
