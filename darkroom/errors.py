"""Error kinds raised by the editing core."""

from __future__ import annotations


class EditorError(Exception):
    """Base class for every failure the editing core reports."""

    kind = "editor"


class ValidationError(EditorError):
    kind = "validation"


class ServiceError(EditorError):
    """The external edit or style service failed or returned no payload."""

    kind = "service"


class ResourceError(EditorError):
    """Paint surface or pixel buffer could not be allocated or decoded."""

    kind = "resource"


class BusyError(EditorError):
    """Another edit operation is already in flight for the session."""

    kind = "busy"
