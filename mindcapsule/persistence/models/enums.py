"""Shared enumerations used across the persistence engine."""

from __future__ import annotations

from enum import StrEnum

# -- Workspace data file -----------------------------------------------------


class DataFormat(StrEnum):
    """Historical shapes of a workspace data file."""

    LEGACY_COMBINED = "legacy_combined"
    """``{workspace: {...}, vertices: {...}}`` -- workspace metadata embedded."""

    VERSIONED = "versioned"
    """``{version, vertices}`` with a missing or outdated ``version``."""

    CURRENT = "current"
    """``{version: DATA_VERSION, vertices}`` -- nothing to migrate."""
