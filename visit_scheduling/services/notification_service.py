# visit_scheduling/services/notification_service.py
import logging
from typing import Optional, Protocol

from twilio.rest import Client as TwilioSDKClient

from visit_scheduling.config import get_settings
from visit_scheduling.models.participant_visit import ParticipantVisit

logger = logging.getLogger(__name__)


def visit_scheduled_message(visit: ParticipantVisit) -> str:
    name = visit.study_visit.visit_name if visit.study_visit else "study visit"
    when = visit.scheduled_date.strftime("%a %d %b %Y at %H:%M")
    return f"Your {name} is scheduled for {when}. Reply to this message if you need to reschedule."


class Notifier(Protocol):
    def visit_scheduled(self, visit: ParticipantVisit) -> None:
        ...


class LoggingNotifier:
    """Used when no SMS provider is configured: records what would be sent."""

    def visit_scheduled(self, visit: ParticipantVisit) -> None:
        logger.info(
            "Notification (not sent) for visit %s: %s",
            visit.id, visit_scheduled_message(visit),
        )


class TwilioNotifier:
    """
    Thin wrapper around the Twilio Python SDK for participant SMS.

    Tests replace it with a fake through the `get_notifier` dependency.
    """

    def __init__(self, account_sid: str, auth_token: str, from_number: str):
        self._client = TwilioSDKClient(account_sid, auth_token)
        self._from_number = from_number

    def send_sms(self, to_number: str, body: str) -> str:
        """
        Send an SMS via Twilio and return the Message SID.
        """
        message = self._client.messages.create(
            to=to_number,
            from_=self._from_number,
            body=body,
        )
        return message.sid

    def visit_scheduled(self, visit: ParticipantVisit) -> None:
        phone: Optional[str] = visit.participant.phone if visit.participant else None
        if not phone:
            logger.info("Visit %s: participant has no phone, skipping SMS", visit.id)
            return
        sid = self.send_sms(phone, visit_scheduled_message(visit))
        logger.info("Visit %s: confirmation SMS queued (%s)", visit.id, sid)


def get_notifier() -> Notifier:
    """
    FastAPI dependency returning the configured notifier.

    Falls back to logging when the Twilio settings are incomplete.
    """
    settings = get_settings()

    missing: list[str] = []
    if not settings.TWILIO_ACCOUNT_SID:
        missing.append("TWILIO_ACCOUNT_SID")
    if not settings.TWILIO_AUTH_TOKEN:
        missing.append("TWILIO_AUTH_TOKEN")
    if not settings.TWILIO_PHONE_NUMBER:
        missing.append("TWILIO_PHONE_NUMBER")

    if missing:
        logger.debug("Twilio not configured, missing: %s", ", ".join(missing))
        return LoggingNotifier()

    return TwilioNotifier(
        account_sid=settings.TWILIO_ACCOUNT_SID,
        auth_token=settings.TWILIO_AUTH_TOKEN,
        from_number=settings.TWILIO_PHONE_NUMBER,
    )


def notify_visit_scheduled(notifier: Notifier, visit: ParticipantVisit) -> bool:
    """
    Best-effort notification; the booking is already committed, so a
    provider failure is logged and reported as False.
    """
    try:
        notifier.visit_scheduled(visit)
    except Exception:
        logger.exception("Failed to notify participant for visit %s", visit.id)
        return False
    return True
