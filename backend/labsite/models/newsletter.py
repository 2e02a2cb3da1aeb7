from sqlalchemy import Column, Integer, String

from labsite.models.base import Base, ModelMixin, utc_now_iso


class NewsletterSubscriber(Base, ModelMixin):
    """Newsletter signup. Email addresses are unique."""

    __tablename__ = "newsletter_subscribers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    email = Column(String, nullable=False, unique=True, index=True)
    country = Column(String, nullable=False)
    ip_address = Column(String, nullable=True)
    created_at = Column(String, nullable=False, default=utc_now_iso, index=True)
