"""
Content models: Hack The Box machines and TryHackMe rooms.

Machine tags are stored as a JSON array string; room tags as a
comma-separated string. Both are exposed as Python lists through
``get_tags``/``set_tags``.
"""

import json
from typing import Any, List

from sqlalchemy import Boolean, Column, String, Text

from labsite.models.base import Base, ModelMixin, TimestampMixin


def parse_tags(value: Any) -> List[str]:
    """
    Normalise a tag value into a list of strings.

    Accepts a list, a JSON array string or a comma-separated string.
    Anything else yields an empty list.
    """
    if not value:
        return []
    if isinstance(value, (list, tuple)):
        return [str(tag).strip() for tag in value if str(tag).strip()]
    if isinstance(value, str):
        text = value.strip()
        if text.startswith("["):
            try:
                parsed = json.loads(text)
            except json.JSONDecodeError:
                parsed = None
            if isinstance(parsed, list):
                return [str(tag).strip() for tag in parsed if str(tag).strip()]
        return [tag.strip() for tag in text.split(",") if tag.strip()]
    return []


class HTBMachine(Base, TimestampMixin, ModelMixin):
    """
    Hack The Box machine writeup entry.

    Attributes:
        id: Slug identifier (defaults to the lower-cased, dash-joined name)
        name: Display name
        os: Operating system (Linux, Windows, ...)
        difficulty: Easy / Medium / Hard / Insane
        status: Completed / In Progress
        is_active: Active machines are still live on the platform and their
            writeups are password protected
        password: Writeup password (compared by plain equality)
        summary: Public summary text
        date_completed: ISO date string or None
        tags: JSON array string
        writeup: Full writeup body (admin or OTP unlock only)
    """

    __tablename__ = "htb_machines"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    os = Column(String, nullable=False)
    difficulty = Column(String, nullable=False, index=True)
    status = Column(String, nullable=False, index=True)
    is_active = Column(Boolean, nullable=False, default=True)
    password = Column(String, nullable=True)
    summary = Column(Text, nullable=True)
    date_completed = Column(String, nullable=True, index=True)
    tags = Column(Text, nullable=False, default="[]")
    writeup = Column(Text, nullable=True)

    def get_tags(self) -> List[str]:
        return parse_tags(self.tags)

    def set_tags(self, tags: Any) -> None:
        self.tags = json.dumps(parse_tags(tags))


class THMRoom(Base, TimestampMixin, ModelMixin):
    """TryHackMe room entry. ``name`` holds the room title."""

    __tablename__ = "thm_rooms"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    difficulty = Column(String, nullable=False)
    status = Column(String, nullable=False, default="In Progress")
    date_completed = Column(String, nullable=True)
    tags = Column(Text, nullable=False, default="")
    description = Column(Text, nullable=True)
    writeup = Column(Text, nullable=True)
    room_code = Column(String, nullable=True)

    def get_tags(self) -> List[str]:
        return parse_tags(self.tags)

    def set_tags(self, tags: Any) -> None:
        self.tags = ",".join(parse_tags(tags))
