"""Persistence subsystem exports."""

from persistence.assignments import SliceAssignmentIndex
from persistence.documents import DocumentStore
from persistence.events import EventLog
from persistence.sqlite_store import SqliteStore, UnitOfWork

__all__ = ["DocumentStore", "EventLog", "SliceAssignmentIndex", "SqliteStore", "UnitOfWork"]
