"""
notify/mailer.py -- Outbound mail composition for confirmation and carer invites.

Delivery is not this project's concern. LogMailer composes each message and
writes it to the "carecoord.mail" logger; a deployment that needs real email
swaps in any object with the same send(to, subject, body) method on
app.state.mailer.

Links point at the single-page client (Settings.frontend_url). The client
reads the token from its own route and POSTs it back to the API:
  {frontend_url}/verify/{token}       -> POST /user/verification/{token}
  {frontend_url}/join/{token}         -> POST /carer/add/{token}

Layer rule: no imports from api/ or care/.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from core.config import get_settings

logger = logging.getLogger("carecoord.mail")


@dataclass
class Message:
    sender: str
    to: str
    subject: str
    body: str


class LogMailer:
    """Mailer that records each message in the application log."""

    def __init__(self, sender: str | None = None) -> None:
        self.sender = sender or get_settings().mail_sender

    def send(self, to: str, subject: str, body: str) -> Message:
        message = Message(sender=self.sender, to=to, subject=subject, body=body)
        logger.info("Mail to=%s subject=%r\n%s", to, subject, body)
        return message


def verification_link(token: str) -> str:
    return f"{get_settings().frontend_url.rstrip('/')}/verify/{token}"


def invitation_link(token: str) -> str:
    return f"{get_settings().frontend_url.rstrip('/')}/join/{token}"


def send_verification(mailer, to: str, first_name: str, token: str) -> None:
    """Mail the email-confirmation link sent after registration."""
    mailer.send(
        to,
        "Confirm your CareCoord email",
        f"Hi {first_name},\n\n"
        f"Please confirm your email address by opening the link below:\n\n"
        f"{verification_link(token)}\n",
    )


def send_carer_invitation(mailer, to: str, carer_name: str, coordinator_name: str, patient_name: str, token: str) -> None:
    """Mail a carer the link that adds them to a patient's care team."""
    mailer.send(
        to,
        f"You've been invited to care for {patient_name}",
        f"Hi {carer_name},\n\n"
        f"{coordinator_name} has invited you to join the care team for {patient_name}.\n"
        f"Accept the invitation by opening the link below:\n\n"
        f"{invitation_link(token)}\n",
    )
