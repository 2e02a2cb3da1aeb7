"""
Pydantic schemas for newsletter subscribers and supporter members.
"""

from typing import List, Optional

from pydantic import EmailStr, Field

from labsite.schemas.common import CamelModel


class NewsletterSignup(CamelModel):
    name: str = Field(min_length=1)
    email: EmailStr
    country: str = Field(min_length=1)


class NewsletterSubscriberOut(CamelModel):
    id: int
    name: str
    email: str
    country: str
    ip_address: Optional[str] = None
    created_at: str


class MemberCreate(CamelModel):
    email: EmailStr
    name: Optional[str] = None
    status: str = "active"
    tier_name: Optional[str] = None


class MemberOut(CamelModel):
    id: int
    email: str
    name: Optional[str] = None
    status: str
    tier_name: Optional[str] = None
    country: Optional[str] = None
    region: Optional[str] = None
    city: Optional[str] = None
    subscribed_at: str


class Supporter(CamelModel):
    """Public supporter card: no email or contact data."""
    name: str
    country: Optional[str] = None
    tier_name: Optional[str] = None
    subscribed_at: Optional[str] = None


class SupporterList(CamelModel):
    subscribers: List[Supporter]
