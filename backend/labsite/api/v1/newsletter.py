"""
Newsletter signup and public supporter listings.
"""

from typing import List

from fastapi import APIRouter, BackgroundTasks, HTTPException, Request, status

from labsite.api.dependencies import CurrentAdmin, DatabaseSession, EmailService
from labsite.core.logging_config import get_logger
from labsite.core.security import get_client_ip
from labsite.models.base import utc_iso_after
from labsite.repositories.members import MemberRepository, NewsletterRepository
from labsite.schemas.common import MessageResponse
from labsite.schemas.members import (
    NewsletterSignup,
    NewsletterSubscriberOut,
    Supporter,
    SupporterList,
)
from labsite.services.email import MailgunEmailService


router = APIRouter()
logger = get_logger(__name__)

# (name, country, tier, days ago) shown until real supporters exist
DEMO_SUPPORTERS = [
    ("Sam", "Mexico", "sudo", 1),
    ("Cloud", "Unknown", "ring-zero", 3),
    ("Alex", "USA", "sudo", 5),
    ("Nova", "Canada", "ring-zero", 7),
    ("Zero", "Japan", "sudo", 9),
]


async def send_welcome_email(email_service: MailgunEmailService, email: str, name: str) -> None:
    if not await email_service.send_welcome(email, name):
        logger.warning("Welcome email not delivered", extra={"email": email})


@router.post("/newsletter", response_model=MessageResponse)
async def subscribe(
    body: NewsletterSignup,
    request: Request,
    background_tasks: BackgroundTasks,
    db: DatabaseSession,
    email_service: EmailService,
) -> MessageResponse:
    """
    Subscribe to the newsletter.

    Raises:
        HTTPException 409: If the email is already subscribed
    """
    try:
        subscriber = await NewsletterRepository(db).subscribe(
            name=body.name,
            email=body.email,
            country=body.country,
            ip_address=get_client_ip(request),
        )
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Email already subscribed",
        )

    background_tasks.add_task(send_welcome_email, email_service, subscriber.email, subscriber.name)
    logger.info("Newsletter signup", extra={"subscriber_id": subscriber.id})
    return MessageResponse(message="Successfully subscribed to newsletter")


@router.get("/newsletter/subscribers", response_model=List[NewsletterSubscriberOut])
async def list_subscribers(admin: CurrentAdmin, db: DatabaseSession) -> List[NewsletterSubscriberOut]:
    subscribers = await NewsletterRepository(db).list_subscribers()
    return [NewsletterSubscriberOut.model_validate(s) for s in subscribers]


@router.get("/subscribers/latest", response_model=SupporterList)
async def latest_supporters(db: DatabaseSession) -> SupporterList:
    members = await MemberRepository(db).latest_supporters(limit=4)
    return SupporterList(subscribers=[Supporter.model_validate(m) for m in members])


@router.get("/subscribers/tiers", response_model=SupporterList)
async def tier_supporters(db: DatabaseSession) -> SupporterList:
    members = await MemberRepository(db).tier_supporters()
    if members:
        return SupporterList(subscribers=[Supporter.model_validate(m) for m in members])
    return SupporterList(
        subscribers=[
            Supporter(
                name=name,
                country=country,
                tier_name=tier,
                subscribed_at=utc_iso_after(days=-days),
            )
            for name, country, tier, days in DEMO_SUPPORTERS
        ]
    )
