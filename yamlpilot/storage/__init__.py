from yamlpilot.storage.events import (
    EventStore,
    MemoryEventStore,
    RedisEventStore,
    build_event_store,
)

__all__ = ["EventStore", "MemoryEventStore", "RedisEventStore", "build_event_store"]
