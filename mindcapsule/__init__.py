"""Mind Capsule - local-first workspace and vertex persistence."""

__version__ = "0.1.0"
