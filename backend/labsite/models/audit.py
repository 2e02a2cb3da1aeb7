"""
Append-only audit tables: admin actions, unauthorized access reports and
writeup unlocks.
"""

import json
from typing import Any

from sqlalchemy import Column, Integer, String, Text

from labsite.models.base import Base, ModelMixin, utc_now_iso


class AdminLog(Base, ModelMixin):
    """
    Audit row for an admin action or a security event.

    ``data`` holds a JSON document; use ``get_data``/``set_data`` rather than
    touching the column directly.
    """

    __tablename__ = "admin_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    action = Column(String, nullable=False, index=True)
    data = Column(Text, nullable=True)
    ip_address = Column(String, nullable=True)
    user_agent = Column(String, nullable=True)
    timestamp = Column(String, nullable=False, default=utc_now_iso, index=True)

    def get_data(self) -> Any:
        if not self.data:
            return None
        try:
            return json.loads(self.data)
        except json.JSONDecodeError:
            return self.data

    def set_data(self, value: Any) -> None:
        if value is None or isinstance(value, str):
            self.data = value
        else:
            self.data = json.dumps(value, default=str)


class UnauthorizedAccessLog(Base, ModelMixin):
    """Visit to a protected page by someone without an admin session."""

    __tablename__ = "unauthorized_access_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    ip_address = Column(String, nullable=False)
    user_agent = Column(String, nullable=True)
    path = Column(String, nullable=False, default="/admin/unauthorized")
    reason = Column(String, nullable=False, default="page_view")
    country = Column(String, nullable=True)
    region = Column(String, nullable=True)
    city = Column(String, nullable=True)
    referer = Column(String, nullable=True)
    timestamp = Column(String, nullable=False, default=utc_now_iso, index=True)


class WriteupAccessLog(Base, ModelMixin):
    """Successful OTP unlock of a machine writeup."""

    __tablename__ = "writeup_access_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    machine_id = Column(String, nullable=False, index=True)
    email = Column(String, nullable=False)
    name = Column(String, nullable=True)
    ip_address = Column(String, nullable=True)
    country = Column(String, nullable=True)
    region = Column(String, nullable=True)
    city = Column(String, nullable=True)
    user_agent = Column(String, nullable=True)
    accessed_at = Column(String, nullable=False, default=utc_now_iso, index=True)
