"""
base.py — Shared Declarative Base

All table models register on this one metadata so that
`Base.metadata.create_all(engine)` builds the full schema on either backend.
"""

from sqlalchemy.orm import declarative_base

Base = declarative_base()
