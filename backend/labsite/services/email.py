"""
Mailgun email service.

Sends transactional mail (writeup OTPs, newsletter welcome, new machine
announcements) through the Mailgun messages API with httpx.

Sending never raises: delivery failures are logged and reported as
``False`` so callers decide whether a failed email fails the request.
"""

import asyncio
import html
import logging
from typing import Iterable, Optional

import httpx

from labsite.core.config import settings

logger = logging.getLogger(__name__)


class MailgunEmailService:
    """
    Thin async client for ``POST {base_url}/{domain}/messages``.

    Usage:
        service = MailgunEmailService()
        sent = await service.send_otp("reader@gmail.com", "482913")
    """

    NOTIFICATION_BATCH_SIZE = 50

    def __init__(
        self,
        api_key: Optional[str] = None,
        domain: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.mailgun_api_key
        self.domain = domain if domain is not None else settings.mailgun_domain
        self.base_url = (base_url or settings.mailgun_base_url).rstrip("/")
        self.timeout = timeout or settings.http_timeout

    @property
    def configured(self) -> bool:
        return bool(self.api_key and self.domain)

    @property
    def sender(self) -> str:
        return f"{settings.site_name} <noreply@{self.domain}>"

    async def send_email(
        self,
        to: str,
        subject: str,
        html_body: str,
        text_body: Optional[str] = None,
    ) -> bool:
        """
        Send one message.

        Returns:
            True when Mailgun accepted the message, False otherwise
        """
        if not self.configured:
            logger.warning("Mailgun not configured, skipping email send", extra={"to": to})
            return False

        data = {
            "from": self.sender,
            "to": to,
            "subject": subject,
            "html": html_body,
        }
        if text_body:
            data["text"] = text_body

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    f"{self.base_url}/{self.domain}/messages",
                    auth=("api", self.api_key),
                    data=data,
                )
                response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.error(
                "Mailgun rejected message",
                extra={"to": to, "status_code": exc.response.status_code, "body": exc.response.text[:500]},
            )
            return False
        except httpx.HTTPError as exc:
            logger.error("Error sending email", extra={"to": to, "error": str(exc)})
            return False

        logger.info("Email sent", extra={"to": to, "subject": subject})
        return True

    async def send_otp(self, email: str, otp: str) -> bool:
        minutes = settings.otp_expiry_minutes
        subject = "Your OTP for Writeup Access"
        body = f"""
        <div style="font-family: Arial, sans-serif; max-width: 480px; margin: 0 auto;">
          <h2>{html.escape(settings.site_name)}</h2>
          <p>Use this code to unlock the writeup:</p>
          <p style="font-size: 32px; font-weight: bold; letter-spacing: 6px;">{otp}</p>
          <p>The code expires in {minutes} minutes and can be used once.</p>
          <p>If you did not request it, ignore this email.</p>
        </div>
        """
        text = f"Your writeup access code is {otp}. It expires in {minutes} minutes."
        return await self.send_email(email, subject, body, text)

    async def send_welcome(self, email: str, name: str) -> bool:
        subject = f"Welcome to {settings.site_name} Newsletter!"
        body = f"""
        <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
          <h1>Welcome, {html.escape(name)}!</h1>
          <p>Thanks for subscribing. You'll hear from us when new machine
          writeups, tools and research land on the site.</p>
          <p><a href="{settings.site_url}/machines">Browse the machines</a></p>
          <p>Happy hacking!</p>
        </div>
        """
        return await self.send_email(email, subject, body)

    async def send_new_machine_notification(
        self,
        recipients: Iterable[str],
        machine_name: str,
        machine_os: str,
        machine_difficulty: str,
    ) -> int:
        """
        Announce a new machine to every recipient, in batches.

        Duplicate addresses are mailed once.

        Returns:
            Number of messages Mailgun accepted
        """
        unique = list(dict.fromkeys(email.strip().lower() for email in recipients if email))
        if not unique:
            logger.info("No subscribers or members to notify about new machine")
            return 0

        subject = f"New {machine_difficulty} Machine: {machine_name}"
        body = f"""
        <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
          <h1>New Machine Alert!</h1>
          <h2>{html.escape(machine_name)}</h2>
          <p><strong>OS:</strong> {html.escape(machine_os)}</p>
          <p><strong>Difficulty:</strong> {html.escape(machine_difficulty)}</p>
          <p><a href="{settings.site_url}/machines">View all machines</a></p>
          <p style="color: #666; font-size: 12px;">You're receiving this because you subscribed to our newsletter.</p>
        </div>
        """

        sent = 0
        for start in range(0, len(unique), self.NOTIFICATION_BATCH_SIZE):
            batch = unique[start:start + self.NOTIFICATION_BATCH_SIZE]
            results = await asyncio.gather(
                *(self.send_email(email, subject, body) for email in batch)
            )
            sent += sum(1 for ok in results if ok)

        logger.info(
            "New machine notification sent",
            extra={"machine": machine_name, "sent": sent, "recipients": len(unique)},
        )
        return sent
