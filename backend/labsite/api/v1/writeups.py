"""
Writeup unlock flow.

A visitor first proves they know the machine password, then requests a
one-time passcode by email (members only) and trades it for the writeup.

Passcodes are 6 digits from ``secrets``, stored only as SHA-256 digests,
valid for ``OTP_EXPIRY_MINUTES`` and consumed on first successful use.
"""

from fastapi import APIRouter, HTTPException, Request, status

from labsite.api.dependencies import DatabaseSession, EmailService, Geolocation
from labsite.core.config import settings
from labsite.core.logging_config import get_logger
from labsite.core.security import generate_otp, get_client_ip, get_user_agent, hash_otp
from labsite.models.base import utc_iso_after
from labsite.repositories.audit import AuditRepository
from labsite.repositories.content import MachineRepository
from labsite.repositories.members import MemberRepository
from labsite.schemas.common import MessageResponse
from labsite.schemas.writeup import (
    OTPSentResponse,
    RequestOTPRequest,
    VerifyOTPRequest,
    VerifyPasswordRequest,
    WriteupResponse,
)


router = APIRouter()
logger = get_logger(__name__)


@router.post("/writeups/verify-password", response_model=MessageResponse)
async def verify_password(body: VerifyPasswordRequest, db: DatabaseSession) -> MessageResponse:
    """
    Check a machine's unlock password.

    Never returns the writeup; that requires the OTP step.

    Raises:
        HTTPException 400: If the machine is not password protected
        HTTPException 401: If the password is wrong
        HTTPException 404: If the machine does not exist
    """
    machine = await MachineRepository(db).get(body.machine_id)
    if machine is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Machine not found")

    if not machine.is_active or not machine.password:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="This machine is not password protected",
        )

    if body.password != machine.password:
        logger.info("Wrong writeup password", extra={"machine_id": machine.id})
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Wrong password")

    return MessageResponse(message="Password verified. Request an OTP to unlock the writeup.")


@router.post("/writeups/request-otp", response_model=OTPSentResponse)
async def request_otp(
    body: RequestOTPRequest,
    request: Request,
    db: DatabaseSession,
    email_service: EmailService,
) -> OTPSentResponse:
    """
    Email a fresh passcode to a member.

    Raises:
        HTTPException 404: If the email does not belong to a member
        HTTPException 429: If a passcode was sent within the resend cooldown
        HTTPException 500: If the email could not be sent
    """
    repo = MemberRepository(db)
    member = await repo.get_by_email(body.email)
    if member is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Email not found. Only members can unlock writeups.",
        )

    if not member.ip_address:
        await repo.update_member(member, ip_address=get_client_ip(request))

    cooldown = settings.otp_resend_cooldown_minutes
    if await repo.otp_issued_since(member.email, utc_iso_after(minutes=-cooldown)):
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=f"An OTP was sent recently. Please wait {cooldown} minutes before requesting another.",
        )

    otp = generate_otp()
    await repo.create_otp(
        member.email,
        hash_otp(otp),
        utc_iso_after(minutes=settings.otp_expiry_minutes),
    )

    if not await email_service.send_otp(member.email, otp):
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to send OTP email",
        )

    logger.info("Writeup OTP sent", extra={"member_id": member.id})
    return OTPSentResponse(
        message="OTP sent to your email",
        expires_in_minutes=settings.otp_expiry_minutes,
    )


@router.post("/writeups/verify-otp", response_model=WriteupResponse)
async def verify_otp(
    body: VerifyOTPRequest,
    request: Request,
    db: DatabaseSession,
    geolocation: Geolocation,
) -> WriteupResponse:
    """
    Trade a passcode for the machine writeup.

    The passcode is consumed as soon as it matches, even if a later check
    fails.

    Raises:
        HTTPException 401: Passcode wrong, expired or already used
        HTTPException 403: Member is not active
        HTTPException 404: Machine missing or without a writeup
    """
    repo = MemberRepository(db)
    otp = await repo.find_usable_otp(body.email, hash_otp(body.otp))
    if otp is None or not await repo.consume_otp(otp):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired OTP",
        )
    await db.commit()

    member = await repo.get_by_email(body.email)
    if member is None or not member.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Active membership required",
        )

    machine = await MachineRepository(db).get(body.machine_id)
    if machine is None or not machine.writeup:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Writeup not found")

    ip = get_client_ip(request)
    location = await geolocation.lookup(ip)
    missing = {key: value for key, value in location.items() if not getattr(member, key)}
    if missing:
        await repo.update_member(member, **missing)

    await AuditRepository(db).add_writeup_access(
        machine_id=body.machine_id,
        email=member.email,
        name=body.name or member.name,
        ip_address=ip,
        user_agent=get_user_agent(request),
        **location,
    )

    logger.info(
        "Writeup unlocked",
        extra={"machine_id": machine.id, "member_id": member.id, "country": location.get("country")},
    )
    return WriteupResponse(writeup=machine.writeup)
