# room_timetable/notifications.py
import logging
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Iterable

from room_timetable.config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BookingSummary:
    booking_id: int
    title: str
    room_name: str
    start_time: object
    end_time: object
    status: str

    @classmethod
    def from_booking(cls, booking) -> "BookingSummary":
        return cls(
            booking_id=booking.id,
            title=booking.title,
            room_name=booking.room.name if booking.room else f"Room {booking.room_id}",
            start_time=booking.start_time,
            end_time=booking.end_time,
            status=booking.status,
        )

    @property
    def duration_label(self) -> str:
        minutes = int((self.end_time - self.start_time).total_seconds() // 60)
        if minutes % 60 == 0:
            hours = minutes // 60
            return f"{hours} hour{'' if hours == 1 else 's'}"
        return f"{minutes} minutes"


def notify(recipients: Iterable[str], summary: BookingSummary) -> bool:
    """Email a booking confirmation. Never raises; returns whether mail went out."""
    recipients = sorted({r for r in recipients if r})
    if not recipients:
        logger.info("No recipients for booking %s, nothing sent", summary.booking_id)
        return False
    if not settings.NOTIFICATIONS_ENABLED or not settings.SMTP_EMAIL:
        logger.info("Notifications disabled, skipped mail for booking %s", summary.booking_id)
        return False

    msg = EmailMessage()
    msg["Subject"] = f"Booking confirmed: {summary.title}"
    msg["From"] = settings.SMTP_EMAIL
    msg["To"] = ", ".join(recipients)
    msg.set_content(
        f"Hello,\n\nThe following room booking is confirmed.\n\n"
        f"Title: {summary.title}\n"
        f"Room: {summary.room_name}\n"
        f"Date: {summary.start_time:%A, %d %B %Y}\n"
        f"Time: {summary.start_time:%H:%M} - {summary.end_time:%H:%M} ({summary.duration_label})\n"
    )

    try:
        with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT) as smtp:
            smtp.starttls()
            smtp.login(settings.SMTP_EMAIL, settings.SMTP_PASSWORD)
            smtp.send_message(msg)
        logger.info("Booking %s confirmation sent to %s", summary.booking_id, recipients)
        return True
    except Exception:
        logger.warning("Failed to send confirmation for booking %s", summary.booking_id, exc_info=True)
        return False


def fire(notifier, recipients, summary: BookingSummary) -> None:
    # The booking is already committed; a broken hook must not undo it.
    if notifier is None:
        return
    try:
        notifier(list(recipients), summary)
    except Exception:
        logger.warning("Notification hook failed for booking %s", summary.booking_id, exc_info=True)


def background_notifier(background_tasks):
    """Notifier that defers ``notify`` to FastAPI background tasks."""
    def schedule(recipients, summary):
        background_tasks.add_task(notify, recipients, summary)
    return schedule
