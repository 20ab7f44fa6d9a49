"""Exception types shared across the request pipeline."""

from __future__ import annotations


class MyIPError(Exception):
    """Base class for errors raised by myip."""


class ResolutionError(MyIPError):
    """The client address could not be determined from the request."""


class LookupFailed(MyIPError):
    """An enrichment source could not produce a result."""
