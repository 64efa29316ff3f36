"""Optional persistence of completed analyses."""

from gitmind.persistence.record_store import RecordStore

__all__ = ["RecordStore"]
