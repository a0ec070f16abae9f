"""Shared SQLAlchemy models registry for the workspace database.

Currently includes the captured-notification model used by ``kufay``.
"""

from .notifications import Base, KfNotification

__all__ = [
    "Base",
    "KfNotification",
]
