# backend/charterbook/services/notification_service.py
"""
Notification Service for Charterbook

Renders guest and captain messages with Jinja2 and hands them to a sender.
Delivery is fire-and-log: a failed send is logged and counted, and never
blocks or rolls back the booking change that triggered it.
"""

from abc import ABC, abstractmethod
from datetime import datetime
import logging
from pathlib import Path
import re
from typing import Any, Dict, List, Mapping, Optional, Tuple

from jinja2 import Environment, FileSystemLoader, StrictUndefined, select_autoescape
import resend

from ..core.config import settings
from ..core.constants import BRAND_NAME
from ..core.timezone_utils import to_local
from ..models.booking import Booking
from ..models.booking_modification import BookingModificationRequest
from ..monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).parent.parent / "templates" / "email"

SUBJECTS: Dict[str, str] = {
    "booking_created": "Your {{ brand }} trip request ({{ confirmation_code }})",
    "booking_confirmed": "Your {{ brand }} trip is confirmed",
    "deposit_reminder": "Reminder: deposit due for your {{ brand }} trip",
    "trip_reminder": "Your {{ brand }} trip is {{ lead_time }}",
    "weather_hold": "Weather hold on your {{ brand }} trip",
    "weather_hold_captain": "Weather hold placed on {{ guest_name }}'s trip",
    "booking_cancelled": "Your {{ brand }} trip has been cancelled",
    "booking_rescheduled": "Your {{ brand }} trip has a new date",
    "modification_requested": "{{ guest_name }} requested a change to their trip",
    "modification_decided": "Your change request was {{ decision }}",
}


class NotificationRenderer:
    """Turns a template name and data into a (subject, body) pair."""

    def __init__(self, template_dir: Path = TEMPLATE_DIR):
        self.env = Environment(
            loader=FileSystemLoader(str(template_dir)),
            autoescape=select_autoescape(["html"]),
            undefined=StrictUndefined,
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self.env.filters["money"] = _format_money
        self.env.filters["local_time"] = _format_local_time

    def render(self, template: str, data: Mapping[str, Any]) -> Tuple[str, str]:
        context = {"brand": BRAND_NAME, **data}
        if template not in SUBJECTS:
            raise KeyError(f"Unknown notification template: {template}")
        subject = self.env.from_string(SUBJECTS[template]).render(**context)
        body = self.env.get_template(f"{template}.txt").render(**context)
        return subject, body


def _format_money(cents: Optional[int]) -> str:
    return f"${(cents or 0) / 100:,.2f}"


def _format_local_time(value: datetime, tz_name: str) -> str:
    return to_local(value, tz_name).strftime("%A, %B %d %Y at %I:%M %p %Z")


class NotificationSender(ABC):
    """
    Delivers rendered notifications.

    ``send`` never raises; it returns False when rendering or delivery fails.
    """

    def __init__(self, renderer: Optional[NotificationRenderer] = None):
        self.renderer = renderer or NotificationRenderer()
        self.logger = logging.getLogger(self.__class__.__name__)

    def send(self, recipient: str, template: str, data: Mapping[str, Any]) -> bool:
        try:
            subject, body = self.renderer.render(template, data)
            self.deliver(recipient, subject, body)
        except Exception as e:
            self.logger.error(
                f"Failed to send '{template}' notification to {recipient}: {str(e)}",
                extra={"template": template, "error_type": type(e).__name__},
            )
            prometheus_metrics.record_notification(template, "failed")
            return False
        prometheus_metrics.record_notification(template, "sent")
        return True

    @abstractmethod
    def deliver(self, recipient: str, subject: str, body: str) -> None:
        pass


class ConsoleNotificationSender(NotificationSender):
    """Logs messages instead of sending them; keeps them for inspection."""

    def __init__(self, renderer: Optional[NotificationRenderer] = None):
        super().__init__(renderer)
        self.sent: List[Dict[str, str]] = []

    def deliver(self, recipient: str, subject: str, body: str) -> None:
        self.sent.append({"to": recipient, "subject": subject, "body": body})
        self.logger.info(f"[console email] to={recipient} subject={subject}")


class ResendNotificationSender(NotificationSender):
    def __init__(
        self,
        api_key: str,
        from_email: str,
        renderer: Optional[NotificationRenderer] = None,
    ):
        super().__init__(renderer)
        if not api_key:
            raise ValueError("Resend API key not configured")
        resend.api_key = api_key
        self.from_email = from_email

    def deliver(self, recipient: str, subject: str, body: str) -> None:
        response = resend.Emails.send(
            {
                "from": f"{BRAND_NAME} <{self.from_email}>",
                "to": recipient,
                "subject": subject,
                "text": body,
                "html": _text_to_html(body),
            }
        )
        self.logger.info(f"Email sent successfully to {recipient} - Subject: {subject}")
        self.logger.debug(f"Resend response: {response}")


def _text_to_html(text: str) -> str:
    escaped = text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")
    paragraphs = re.split(r"\n\s*\n", escaped.strip())
    return "".join(f"<p>{p.replace(chr(10), '<br>')}</p>" for p in paragraphs)


def build_notification_sender() -> NotificationSender:
    if settings.email_provider == "resend":
        return ResendNotificationSender(
            api_key=settings.resend_api_key or "",
            from_email=settings.notification_from_email,
        )
    return ConsoleNotificationSender()


class NotificationService:
    """
    Booking-level notifications.

    Each method gathers the template data for one event and sends it to the
    guest or the captain. Return values report delivery; callers that only
    fire-and-forget can ignore them.
    """

    def __init__(self, sender: Optional[NotificationSender] = None):
        self.sender = sender or build_notification_sender()
        self.logger = logging.getLogger(__name__)

    @staticmethod
    def _booking_context(booking: Booking) -> Dict[str, Any]:
        captain = booking.captain
        tz_name = captain.timezone if captain is not None else settings.default_timezone
        return {
            "guest_name": booking.guest_name,
            "captain_name": captain.display_name if captain is not None else "",
            "trip_title": booking.trip_type.title if booking.trip_type is not None else "",
            "scheduled_start": booking.scheduled_start,
            "timezone": tz_name,
            "party_size": booking.party_size,
            "confirmation_code": booking.confirmation_code,
            "total_price_cents": booking.total_price_cents,
            "deposit_required_cents": booking.deposit_required_cents,
            "deposit_paid_cents": booking.deposit_paid_cents,
            "balance_due_cents": booking.balance_due_cents,
            "manage_url": f"{settings.public_app_url.rstrip('/')}/manage/{booking.management_token}",
        }

    def _to_guest(self, booking: Booking, template: str, **extra: Any) -> bool:
        return self.sender.send(
            booking.guest_email, template, {**self._booking_context(booking), **extra}
        )

    def _to_captain(self, booking: Booking, template: str, **extra: Any) -> bool:
        captain = booking.captain
        if captain is None or not captain.email:
            self.logger.warning(f"No captain email for booking {booking.id}; skipping {template}")
            return False
        return self.sender.send(captain.email, template, {**self._booking_context(booking), **extra})

    def send_booking_created(self, booking: Booking) -> bool:
        return self._to_guest(booking, "booking_created")

    def send_booking_confirmed(self, booking: Booking) -> bool:
        return self._to_guest(booking, "booking_confirmed")

    def send_deposit_reminder(self, booking: Booking) -> bool:
        return self._to_guest(booking, "deposit_reminder")

    def send_trip_reminder(self, booking: Booking, hours_ahead: int) -> bool:
        lead_time = "tomorrow" if hours_ahead <= 24 else f"in {hours_ahead // 24} days"
        captain = booking.captain
        meeting_spot = None
        if captain is not None and captain.has_meeting_spot:
            meeting_spot = f"{captain.meeting_spot_latitude},{captain.meeting_spot_longitude}"
        return self._to_guest(
            booking, "trip_reminder", lead_time=lead_time, meeting_spot=meeting_spot
        )

    def send_weather_hold(self, booking: Booking, offers: List[Any]) -> bool:
        reason = booking.weather_hold_reason or ""
        guest_sent = self._to_guest(
            booking,
            "weather_hold",
            reason=reason,
            offers=[offer.proposed_start for offer in offers],
        )
        captain_sent = self._to_captain(booking, "weather_hold_captain", reason=reason)
        return guest_sent and captain_sent

    def send_booking_cancelled(self, booking: Booking, refund_cents: int) -> bool:
        return self._to_guest(
            booking,
            "booking_cancelled",
            reason=booking.cancellation_reason or "",
            refund_cents=refund_cents,
        )

    def send_booking_rescheduled(self, booking: Booking) -> bool:
        return self._to_guest(
            booking, "booking_rescheduled", original_start=booking.original_scheduled_start
        )

    def send_modification_requested(
        self, booking: Booking, request: BookingModificationRequest
    ) -> bool:
        return self._to_captain(
            booking,
            "modification_requested",
            new_start=request.new_start,
            new_party_size=request.new_party_size,
            reason=request.reason or "",
        )

    def send_modification_decided(
        self, booking: Booking, request: BookingModificationRequest
    ) -> bool:
        return self._to_guest(
            booking,
            "modification_decided",
            decision=request.status,
            captain_response=request.captain_response or "",
        )
