"""Custom exception hierarchy for rfidrelay."""

from __future__ import annotations


class RelayError(Exception):
    """Base exception for all rfidrelay errors."""


class RelayConfigError(RelayError):
    """Invalid or missing configuration."""


class PayloadDecodeError(RelayError):
    """An inbound broker message could not be decoded into a tag read."""

    def __init__(self, message: str, *, topic: str = "") -> None:
        self.topic = topic
        super().__init__(message)


class BrokerLinkError(RelayError):
    """The broker connection could not be set up."""


class ViewerSendError(RelayError):
    """Delivery to a single viewer failed.

    The viewer is dropped; other viewers are unaffected.
    """


class RelayClosedError(RelayError):
    """The relay has been shut down and accepts no new viewers."""
