"""
Operation logging for service and engine calls.

Every public service method is wrapped in ``@operation()``. The wrapper logs
ENTER, EXIT and ERROR lines carrying a shared correlation id, the account
being worked on and the call duration, and stamps the operation onto any
BaseError passing through so the API error log can be traced back to it.
"""

import inspect
import time
import uuid
from contextlib import contextmanager
from functools import wraps
from typing import Any, Callable, Dict, Optional, TypeVar, Union, cast

from ..constants import OperationStatus
from ..exceptions import (
    BaseError,
    clear_correlation_id,
    get_correlation_id,
    set_correlation_id,
)
from ..utils.logger import ContextAwareLogger, get_logger

# Parameter names whose values never reach the log
_SENSITIVE_PARAMS = frozenset({"secret", "new_secret", "password", "secret_hash"})

# Parameters copied into the log context so one account can be followed across calls
_ACCOUNT_KEYS = ("account_id", "profile_id", "credential_id", "identifier", "login")

F = TypeVar("F", bound=Callable[..., Any])


class OperationContext:
    """One running operation: its name, ids, start time and log context."""

    def __init__(self, operation_name: str, correlation_id: Optional[str] = None, **context):
        self.operation_name = operation_name
        self.operation_id = str(uuid.uuid4())
        inherited = get_correlation_id()
        self.correlation_id = correlation_id or inherited or str(uuid.uuid4())
        # The outermost operation on a thread owns the id and clears it on exit
        self.owns_correlation_id = inherited is None

        # Nested operations and errors raised below pick the id up from the thread
        set_correlation_id(self.correlation_id)

        self.context = context
        self.start_time = time.perf_counter()

    @property
    def duration_ms(self) -> float:
        return round((time.perf_counter() - self.start_time) * 1000, 2)

    def add_context(self, **kwargs) -> None:
        self.context.update(kwargs)

    def log_extra(self, **more) -> Dict[str, Any]:
        """Context for a log line: caller context, ids, then ``more``."""
        return {
            **self.context,
            "operation_id": self.operation_id,
            "correlation_id": self.correlation_id,
            **more,
        }


class OperationHandler:
    """Writes the ENTER/EXIT/ERROR lines around an operation."""

    def __init__(self, logger: Optional[ContextAwareLogger] = None):
        self.logger = logger if logger is not None else get_logger()

    @contextmanager
    def operation(self, name: str, **context):
        op_ctx = OperationContext(name, **context)
        self.logger.info(f"ENTER: {name}", extra=op_ctx.log_extra())

        try:
            yield op_ctx
        except BaseError as e:
            e.add_context(
                operation_name=name,
                operation_id=op_ctx.operation_id,
                operation_duration_ms=op_ctx.duration_ms,
            )
            # A saga that undid its steps reports compensated rather than a bare error
            status = (
                OperationStatus.COMPENSATED
                if e.context.get("compensated_steps")
                else OperationStatus.ERROR
            )
            self.logger.error(
                f"ERROR: {name} -> {e.category} {e.error_code.value}: {e.message}",
                extra=op_ctx.log_extra(
                    duration_ms=op_ctx.duration_ms,
                    error_id=e.error_id,
                    status=status.value,
                ),
            )
            raise
        except Exception as e:
            self.logger.exception(
                f"ERROR: {name} -> {type(e).__name__}: {e}",
                extra=op_ctx.log_extra(
                    duration_ms=op_ctx.duration_ms,
                    error_type=type(e).__name__,
                    status=OperationStatus.ERROR.value,
                ),
            )
            raise
        else:
            self.logger.info(
                f"EXIT: {name}",
                extra=op_ctx.log_extra(
                    duration_ms=op_ctx.duration_ms,
                    status=OperationStatus.SUCCESS.value,
                ),
            )
        finally:
            if op_ctx.owns_correlation_id:
                clear_correlation_id()


def _sanitize_param(param):
    """Loggable form of an argument: scalars as-is, small containers recursively."""
    if param is None or isinstance(param, (str, int, float, bool)):
        return param
    if isinstance(param, dict) and len(param) < 10:
        return {k: _mask(k, v) for k, v in param.items()}
    if isinstance(param, (list, tuple)) and len(param) < 10:
        return [_sanitize_param(x) for x in param]
    # Schemas, sessions and gateways are logged by type only
    return type(param).__name__


def _mask(param_name: str, value: Any) -> Any:
    return "***" if param_name in _SENSITIVE_PARAMS else _sanitize_param(value)


def _operation_name(func: Callable, args: tuple) -> str:
    """``module.Class.method`` for methods, ``module.function`` otherwise."""
    parts = [func.__module__.split(".")[-1]]
    if args and not inspect.isclass(args[0]) and hasattr(args[0], func.__name__):
        parts.append(type(args[0]).__name__)
    parts.append(func.__name__)
    return ".".join(parts)


def operation(name: Union[Optional[str], Callable] = None):
    """
    Decorator that runs a function inside an OperationHandler.

    Usable bare (``@operation``) or called (``@operation()`` /
    ``@operation(name="engine.create")``). Without a name, the operation is
    named after the module, class and function.
    """

    def decorator(func: F) -> F:
        signature = inspect.signature(func)

        @wraps(func)
        def wrapper(*args, **kwargs) -> Any:
            logger = get_logger()
            op_name = name if name is not None else _operation_name(func, args)

            try:
                bound = signature.bind_partial(*args, **kwargs).arguments
            except TypeError:
                # Let the real call raise the argument error
                bound = {}
            params = {k: v for k, v in bound.items() if k not in ("self", "cls")}

            context = {"source_module": func.__module__}
            for key in _ACCOUNT_KEYS:
                if isinstance(params.get(key), str):
                    context[key] = params[key]

            sanitized = {k: _mask(k, v) for k, v in params.items()}
            logger.debug(f"args: {sanitized}")

            with OperationHandler(logger=logger).operation(op_name, **context):
                return func(*args, **kwargs)

        return cast(F, wrapper)

    if callable(name):
        func, name = name, None
        return decorator(func)

    return decorator
