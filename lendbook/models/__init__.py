"""Domain models for lending bookkeeping."""

from lendbook.models.base import Event

__all__ = ["Event"]
