"""Versioned identifiers for frame events and persisted config schemas."""

CONFIG_SCHEMA_V1 = "ofrc.v1"

EVENT_FRAME_CONNECTED = "frame.connected"
EVENT_FRAME_UPDATED = "frame.updated"
EVENT_ARTWORK_CHANGED = "artwork.changed"
EVENT_SIDE_EFFECT_FAILED = "frame.side_effect_failed"

SUPPORTED_CONFIG_SCHEMAS = {
    CONFIG_SCHEMA_V1,
}
