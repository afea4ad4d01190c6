"""Worker contract and an optional convenience base class.

Anything with an ``execute(request)`` method satisfies :class:`Worker`;
``execute`` may return a :class:`WorkerResponse` directly or an awaitable of
one. :class:`BaseWorker` adds request validation, logging and conversion of
exceptions into failure responses.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Awaitable
from typing import Any, Protocol, runtime_checkable

from loguru import logger

from autocrew.core.exceptions import WorkerExecutionError

from .messages import WorkerRequest, WorkerResponse, validate_request


@runtime_checkable
class Worker(Protocol):
    """The single method a worker must implement."""

    def execute(self, request: WorkerRequest) -> WorkerResponse | Awaitable[WorkerResponse]: ...


class BaseWorker(ABC):
    """Base class for async workers.

    Subclasses implement :meth:`_execute`. :meth:`execute` never raises:
    invalid requests and exceptions come back as ``success=False``.
    """

    role: str = "generic"

    def __init__(self, name: str = "", system_prompt: str = ""):
        self.name = name or type(self).__name__
        self.system_prompt = system_prompt

    async def execute(self, request: WorkerRequest) -> WorkerResponse:
        problems = validate_request(request)
        if problems:
            logger.warning(f"{self.name}: rejected request: {'; '.join(problems)}")
            return WorkerResponse.failure("; ".join(problems), message="Invalid request")

        logger.debug(f"{self.name} executing phase={request.phase or '-'} role={request.role or self.role}")
        try:
            response = await self._execute(request)
        except Exception as e:
            logger.exception(f"{self.name} failed")
            err = WorkerExecutionError(str(e), role=request.role or self.role)
            err.__cause__ = e
            return WorkerResponse.failure(str(e), message=f"{self.name} failed", exception=err)

        if not isinstance(response, WorkerResponse):
            logger.error(f"{self.name} returned {type(response).__name__}, expected WorkerResponse")
            return WorkerResponse.failure(f"{self.name} returned an invalid response")
        return response

    @abstractmethod
    async def _execute(self, request: WorkerRequest) -> WorkerResponse:
        """Produce this worker's contribution for *request*."""

    def format_prompt(self, template: str, **values: Any) -> str:
        """Fill ``{name}`` placeholders in *template*; unknown names are left intact."""
        out = template
        for key, value in values.items():
            out = out.replace("{" + key + "}", str(value))
        return out
