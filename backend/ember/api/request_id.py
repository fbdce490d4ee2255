"""Request id lookup for error payloads."""

from __future__ import annotations

from typing import Optional

from fastapi import Request

from ember.obs import logging as obs_logging

REQUEST_ID_ATTR = "request_id"


def get_request_id(request: Optional[Request] = None, default: str = "unknown") -> str:
    """Return the id the observability middleware bound for this request.

    ``request.state`` outlives the logging context, so it is checked first;
    handlers for unhandled errors run after the middleware has unwound.
    """
    if request is not None:
        rid = getattr(request.state, REQUEST_ID_ATTR, None)
        if rid:
            return rid
    return obs_logging.current_request_id() or default
