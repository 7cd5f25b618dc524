"""
exceptions.py — Upload Node Error Types
==========================================
Errors raised by the chunk assembly engine and its helpers.
"""


class AssemblyError(Exception):
    """Base class for chunk assembly failures."""


class InvalidChunkError(AssemblyError, ValueError):
    """A chunk request is malformed (bad index, count, name or payload)."""


class StorageError(AssemblyError):
    """The filesystem failed while a chunk was being staged."""


class MergeConflict(AssemblyError):
    """Another caller published the artifact first."""
