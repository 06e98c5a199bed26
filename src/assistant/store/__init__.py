from assistant.store.records import RecordStore

__all__ = ["RecordStore"]
