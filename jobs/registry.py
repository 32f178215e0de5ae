"""
Job handler registry — maps job type keys to handler callables.

When the worker pool starts a job it knows the job's type ("payment:verify",
"sleep", ...) but needs the function to call. This registry does that lookup.

Keys can be JobType members (the typed catalogue of platform job kinds) or plain
strings for kinds the application defines itself; both normalise to the same
string key, so JobType.SLEEP and "sleep" are the same entry.

One registry per QueueService — there is no module-level handler table.
"""

import importlib
import inspect
import logging
from typing import Any, Callable, Union

from jobs.echo import EchoJob
from jobs.sleep_job import SleepJob
from models.enums import JobType
from models.errors import UnknownJobType

logger = logging.getLogger(__name__)

Handler = Callable[..., Any]


def _key(job_type: Union[JobType, str]) -> str:
    return job_type.value if isinstance(job_type, JobType) else str(job_type)


def is_async_handler(handler: Handler) -> bool:
    """True for coroutine functions and objects whose __call__ is a coroutine function."""
    if inspect.iscoroutinefunction(handler):
        return True
    return inspect.iscoroutinefunction(getattr(handler, "__call__", None))


class HandlerRegistry:

    def __init__(self):
        self._handlers: dict[str, Handler] = {}

    def register(self, job_type: Union[JobType, str], handler: Handler) -> None:
        """
        Store a handler for job_type.

        Re-registering an existing type replaces the previous handler (last write
        wins). That is allowed but logged, because it is usually a wiring mistake.
        """
        key = _key(job_type)
        if not callable(handler):
            raise TypeError(f"Handler for {key} must be callable")

        if key in self._handlers:
            logger.warning(f"Overwriting handler for job type: {key}")
        self._handlers[key] = handler
        logger.debug(f"Registered handler: {key}")

    def get(self, job_type: Union[JobType, str]) -> Handler:
        """Look up a handler by type. Raises UnknownJobType if nothing is registered."""
        key = _key(job_type)
        handler = self._handlers.get(key)
        if handler is None:
            raise UnknownJobType(key, self.types())
        return handler

    def ensure_registered(self, job_type: Union[JobType, str]) -> str:
        """Validate job_type without side effects and return its normalised key."""
        key = _key(job_type)
        if key not in self._handlers:
            raise UnknownJobType(key, self.types())
        return key

    def types(self) -> list[str]:
        return sorted(self._handlers)

    def __contains__(self, job_type: object) -> bool:
        if not isinstance(job_type, (JobType, str)):
            return False
        return _key(job_type) in self._handlers

    def __len__(self) -> int:
        return len(self._handlers)


def register_default_handlers(registry: HandlerRegistry) -> None:
    """Register the built-in handlers shipped in jobs/."""
    for handler_cls in [SleepJob, EchoJob]:
        handler = handler_cls()
        registry.register(handler.job_type, handler)


def load_handler_modules(registry: HandlerRegistry, module_paths: str) -> list[str]:
    """
    Import each module in a comma-separated list and call its register_handlers(registry).

    This is how a deployment plugs in its own handlers (payment, notification,
    maintenance, ...) without editing the entry points. Returns the modules loaded.
    """
    loaded = []
    for path in (p.strip() for p in module_paths.split(",")):
        if not path:
            continue
        module = importlib.import_module(path)
        register = getattr(module, "register_handlers", None)
        if not callable(register):
            raise TypeError(f"Handler module {path} has no register_handlers(registry) function")
        register(registry)
        loaded.append(path)
        logger.info(f"Loaded handlers from {path}")
    return loaded
