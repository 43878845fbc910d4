"""
api_key.py — Table Models for External API Access

Purpose:
- ApiKey: credentials issued to external applications. Only the SHA-256 hash
  of a key is stored; the raw key is shown once, at issue time.
- ApiLog: one row per API-key authenticated request (usage statistics).
"""

from sqlalchemy import Boolean, Column, DateTime, Index, Integer, Unicode, UnicodeText, func

from orgadmin.models.base import Base


class ApiKey(Base):
    __tablename__ = "API_Keys"

    api_key_id = Column(Unicode(36), primary_key=True)
    api_key_hash = Column(Unicode(64), unique=True, nullable=False)
    key_prefix = Column(Unicode(16), nullable=True)  # first chars, for display only

    app_name = Column(Unicode(100), nullable=False)
    description = Column(Unicode(500), nullable=True)
    permissions = Column(Unicode(100), nullable=False, default="read", server_default="read")

    is_active = Column(Boolean, nullable=False, default=True, server_default="1")
    expires_date = Column(DateTime, nullable=True)
    last_used_date = Column(DateTime, nullable=True)

    created_date = Column(DateTime, nullable=False, server_default=func.current_timestamp())
    created_by = Column(Unicode(50), nullable=True)
    updated_date = Column(DateTime, nullable=True)
    updated_by = Column(Unicode(50), nullable=True)

    def __repr__(self):
        return f"<ApiKey {self.api_key_id} {self.app_name}>"


class ApiLog(Base):
    __tablename__ = "API_Logs"

    log_id = Column(Integer, primary_key=True, autoincrement=True)
    api_key_id = Column(Unicode(36), nullable=True)
    endpoint = Column(Unicode(500), nullable=True)
    method = Column(Unicode(10), nullable=True)
    request_body = Column(UnicodeText, nullable=True)
    response_status = Column(Integer, nullable=True)
    response_time_ms = Column(Integer, nullable=True)
    ip_address = Column(Unicode(64), nullable=True)
    user_agent = Column(Unicode(500), nullable=True)
    error_message = Column(UnicodeText, nullable=True)
    created_date = Column(DateTime, nullable=False, server_default=func.current_timestamp())

    __table_args__ = (
        Index("idx_api_logs_key_date", "api_key_id", "created_date"),
    )
