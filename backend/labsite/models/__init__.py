"""
SQLAlchemy ORM models for the lab site.

Import models from this module to ensure they're registered with SQLAlchemy.
"""

from labsite.models.base import Base, TimestampMixin, ModelMixin
from labsite.models.admin import AdminUser, AdminSession, AdminLoginAttempt
from labsite.models.audit import AdminLog, UnauthorizedAccessLog, WriteupAccessLog
from labsite.models.machine import HTBMachine, THMRoom
from labsite.models.member import Member, OTPVerification
from labsite.models.newsletter import NewsletterSubscriber
from labsite.models.stats import HTBStats, THMStats

__all__ = [
    # Base classes
    "Base",
    "TimestampMixin",
    "ModelMixin",
    # Models
    "AdminUser",
    "AdminSession",
    "AdminLoginAttempt",
    "AdminLog",
    "UnauthorizedAccessLog",
    "WriteupAccessLog",
    "HTBMachine",
    "THMRoom",
    "Member",
    "OTPVerification",
    "NewsletterSubscriber",
    "HTBStats",
    "THMStats",
]
