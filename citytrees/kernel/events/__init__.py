"""
Audit logging - append-only event store.
"""

from citytrees.kernel.events.event_store import EventStore

__all__ = ["EventStore"]
