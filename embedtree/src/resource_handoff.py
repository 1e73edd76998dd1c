import asyncio
import logging
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ResourceHandoff(Generic[T]):
    """
    One-shot handoff of an externally created resource (the posted message).

    The first ``provide_resource`` call fixes the resource and releases every
    awaiter; later calls are ignored. There is no cancellation: awaiters that
    lose interest simply drop their future.
    """

    def __init__(self) -> None:
        self._resource: T | None = None
        self._provided = False
        self._waiters: list[asyncio.Future] = []

    @property
    def current_resource(self) -> T | None:
        """The resource, or None before it has been provided."""
        return self._resource

    @property
    def is_provided(self) -> bool:
        return self._provided

    def await_resource(self) -> "asyncio.Future[T]":
        """Return a future resolving with the resource; must run inside an event loop."""
        future = asyncio.get_running_loop().create_future()
        if self._provided:
            future.set_result(self._resource)
        else:
            self._waiters.append(future)
        return future

    def provide_resource(self, resource: T) -> None:
        if self._provided:
            logger.debug(f"Resource already provided, ignoring {resource!r}")
            return

        self._resource = resource
        self._provided = True

        waiters, self._waiters = self._waiters, []
        for future in waiters:
            if not future.done():
                future.set_result(resource)
