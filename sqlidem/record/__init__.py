"""Record and playback of query results."""

from sqlidem.record.recorder import (
    Mode,
    Recorder,
    RecorderConfig,
    Section,
    config,
    create,
)

__all__ = [
    "Mode",
    "Recorder",
    "RecorderConfig",
    "Section",
    "config",
    "create",
]
