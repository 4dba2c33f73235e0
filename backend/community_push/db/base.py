"""Declarative base shared by all models and alembic."""
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass
