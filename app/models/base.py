# File: app/models/base.py

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy models.

    Import a model module before calling init_db() so its table is
    registered on Base.metadata.
    """
    pass
