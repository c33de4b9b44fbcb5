"""SQLAlchemy models package: the six universal tables.

Important: This project uses a single declarative Base defined in `db.py`.
Import `Base` from this package in all model modules.

    Base.metadata.create_all(...)

This keeps `Base.metadata` consistent across the app.
"""

from db import Base  # re-export a single shared Base

# Import models so they are registered with SQLAlchemy metadata on startup.
# This makes `Base.metadata.create_all()` create all tables for a fresh DB.
from models.organizations import Organization  # noqa: F401
from models.entities import Entity  # noqa: F401
from models.dynamic_data import DynamicData  # noqa: F401
from models.relationships import Relationship  # noqa: F401
from models.transactions import Transaction  # noqa: F401
from models.transaction_lines import TransactionLine  # noqa: F401
