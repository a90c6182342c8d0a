"""Error taxonomy shared by repositories, services and the HTTP layer."""

from __future__ import annotations


class GardenError(Exception):
    """Base class for every error raised deliberately by this package."""


class InvalidInputError(GardenError):
    """Missing or malformed caller input. Never retried."""


class NotFoundError(GardenError):
    """A referenced device, subscription or measurement does not exist."""


class UpstreamReadError(GardenError):
    """The time-series store could not be reached or rejected the query."""


class DeliveryError(GardenError):
    """A push endpoint rejected the message or could not be reached."""


class PersistenceError(GardenError):
    """The relational store failed to read or write a record."""
