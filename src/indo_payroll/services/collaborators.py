"""Deadline handling for calls into repositories and other collaborators."""

from __future__ import annotations

import asyncio
from typing import Awaitable, TypeVar

from sqlalchemy.exc import SQLAlchemyError

from indo_payroll.errors import ExternalDependencyError

T = TypeVar("T")

DEFAULT_TIMEOUT_SECONDS = 30.0


async def call_with_timeout(awaitable: Awaitable[T], timeout: float, what: str) -> T:
    """Await a collaborator with a deadline.

    Timeouts and database failures surface as a retryable
    ExternalDependencyError naming what was being loaded.
    """
    try:
        return await asyncio.wait_for(awaitable, timeout)
    except asyncio.TimeoutError as e:
        raise ExternalDependencyError(
            f"Timed out after {timeout}s loading {what}", retryable=True
        ) from e
    except SQLAlchemyError as e:
        raise ExternalDependencyError(f"Failed loading {what}: {e}", retryable=True) from e
