"""Persistence and catalog engine for workspaces, vertices and their assets."""

from mindcapsule.persistence.engine import PersistenceEngine, PruneResult

__all__ = ["PersistenceEngine", "PruneResult"]
