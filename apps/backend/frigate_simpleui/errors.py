from __future__ import annotations


class SimpleUIError(Exception):
    """Base class for every error raised by the config core."""


class TransportError(SimpleUIError):
    """Network failure or timeout talking to a camera or to Frigate."""


class ParseError(SimpleUIError):
    """Malformed remote document or ONVIF metadata."""


class ValidationError(SimpleUIError, ValueError):
    """Rejected input; raised before any store mutation."""


class StateConflictError(SimpleUIError):
    """Operation collides with existing store state (e.g. duplicate camera name)."""
