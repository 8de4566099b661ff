"""Per-vertex asset managers.

Each module provides async functions operating on one vertex's asset
directory.  Managers accept the ``FileSystem`` primitive and the vertex as
parameters.  Reads of missing or corrupt sidecar files return empty results;
write failures propagate as ``OSError`` or a domain exception from
``mindcapsule.persistence.errors``.
"""
