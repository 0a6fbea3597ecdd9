"""Shared service helpers and base classes.

Gives every service a consistent logger and the upstream error mapping
without coupling them to FastAPI routing.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from fastapi import HTTPException

from .models import UpstreamResponse


class BaseService:
    """Base class that provides a logger for derived services."""

    def __init__(self, logger: logging.Logger | None = None):
        # Use module-qualified name so loggers stay readable when subclassed
        self.logger = logger or logging.getLogger(self.__class__.__module__)

    def _raise_for_upstream(self, response: UpstreamResponse, source: str = "Officevibe") -> Any:
        """
        Return the response body, or raise HTTPException mirroring the upstream status.
        """
        if response.ok:
            return response.body
        if isinstance(response.body, str) or response.body is None:
            detail = response.body or ""
        else:
            detail = json.dumps(response.body)
        self.logger.error("%s API returned %s: %s", source, response.status, detail[:500])
        raise HTTPException(
            status_code=response.status,
            detail=f"{source} API error: {response.status}. {detail}",
        )
