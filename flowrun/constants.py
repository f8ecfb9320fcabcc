"""Shared defaults for flowrun."""

DEFAULT_MAX_CONSECUTIVE_FAILURES = 5
DEFAULT_SCHEDULER_INTERVAL_SECONDS = 60.0
DEFAULT_SCHEDULER_TIMEZONE = "UTC"

GATE_TOPIC = "gates"
SCHEDULER_TRIGGER = "scheduler"

# Keys checked, in order, when pulling document content from an upstream output.
DOCUMENT_CONTENT_KEYS = ("content", "result", "formatted")
