from community_push.db.base import Base
from community_push.db.session import engine, SessionLocal
from community_push.db.tables import ALL_TABLE_NAMES, QUEUE_TABLE_NAMES

__all__ = ["engine", "SessionLocal", "Base", "ALL_TABLE_NAMES", "QUEUE_TABLE_NAMES"]
