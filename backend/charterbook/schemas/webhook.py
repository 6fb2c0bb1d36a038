"""Acknowledgement returned to the payment processor's webhook calls."""

from ._strict_base import StrictModel


class WebhookResponse(StrictModel):
    status: str
    event_type: str
    message: str = ""
