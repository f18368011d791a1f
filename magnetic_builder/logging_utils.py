from __future__ import annotations

import inspect
import logging
import reprlib
import time
from functools import wraps
from typing import Any, Callable, Iterable, Mapping, MutableMapping, Optional, Sequence, Set, TypeVar, cast

import numpy as np

F = TypeVar("F", bound=Callable[..., Any])

_repr = reprlib.Repr()
_repr.maxother = 120
_repr.maxstring = 80


def format_vec3(value: Any) -> str:
    """Render a 3-vector as ``(x, y, z)`` with three decimals."""

    x, y, z = (float(c) for c in value)
    return f"({x:.3f}, {y:.3f}, {z:.3f})"


def _safe_repr(value: Any, *, max_items: int = 5, max_length: int = 400) -> str:
    """Short, bounded rendering of pipeline arguments and results.

    3-vectors print as coordinates, larger arrays as a shape summary, and
    constraints through their ``describe()``. Containers show at most
    ``max_items`` entries.
    """

    if isinstance(value, np.ndarray):
        if value.shape == (3,):
            return format_vec3(value)
        if value.size == 0:
            return f"ndarray(shape={tuple(value.shape)})"
        return (
            f"ndarray(shape={tuple(value.shape)}, dtype={value.dtype}, "
            f"min={float(value.min()):.6g}, max={float(value.max()):.6g})"
        )

    describe = getattr(value, "describe", None)
    if callable(describe) and not isinstance(value, type):
        return f"<{describe()}>"

    if isinstance(value, Mapping):
        shown = [f"{_safe_repr(k)}: {_safe_repr(v)}" for k, v in list(value.items())[:max_items]]
        if len(value) > max_items:
            shown.append(f"... +{len(value) - max_items}")
        return "{" + ", ".join(shown) + "}"

    if isinstance(value, (list, tuple, set, frozenset)):
        items = list(value)
        shown = [_safe_repr(item) for item in items[:max_items]]
        if len(items) > max_items:
            shown.append(f"... +{len(items) - max_items}")
        body = ", ".join(shown)
        return f"({body})" if isinstance(value, tuple) else f"[{body}]"

    rendered = _repr.repr(value)
    if len(rendered) > max_length:
        return rendered[:max_length] + "..."
    return rendered


def _format_call(signature: Optional[inspect.Signature], args: Sequence[Any], kwargs: Mapping[str, Any]) -> str:
    if signature is not None:
        try:
            bound = signature.bind_partial(*args, **kwargs)
        except TypeError:
            pass
        else:
            named = bound.arguments.items()
            return ", ".join(f"{key}={_safe_repr(value)}" for key, value in named) or "no-args"
    parts = [_safe_repr(arg) for arg in args]
    parts.extend(f"{key}={_safe_repr(value)}" for key, value in kwargs.items())
    return ", ".join(parts) or "no-args"


def debug_log_call(
    logger: logging.Logger, *, name: Optional[str] = None, log_result: bool = True
) -> Callable[[F], F]:
    """Decorator logging entry (with named arguments), exit time and result at DEBUG."""

    def decorator(func: F) -> F:
        if getattr(func, "_debug_logging_wrapped", False):
            return func

        label = name or getattr(func, "__qualname__", getattr(func, "__name__", "<callable>"))
        try:
            signature: Optional[inspect.Signature] = inspect.signature(func)
        except (TypeError, ValueError):
            signature = None

        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any):
            if not logger.isEnabledFor(logging.DEBUG):
                return func(*args, **kwargs)
            logger.debug("Entering %s (%s)", label, _format_call(signature, args, kwargs))
            started = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception:
                logger.exception("Exception in %s", label)
                raise
            elapsed_ms = (time.perf_counter() - started) * 1000.0
            if log_result:
                logger.debug("Exiting %s after %.2f ms -> %s", label, elapsed_ms, _safe_repr(result))
            else:
                logger.debug("Exiting %s after %.2f ms", label, elapsed_ms)
            return result

        setattr(wrapper, "_debug_logging_wrapped", True)
        return cast(F, wrapper)

    return decorator


def apply_debug_logging(
    namespace: MutableMapping[str, Any],
    *,
    logger: Optional[logging.Logger] = None,
    skip: Optional[Iterable[str]] = None,
) -> None:
    """Wrap the public module-level functions of ``namespace`` with DEBUG logging.

    Private helpers (leading underscore) and names listed in ``skip`` are left
    untouched so hot inner loops do not pay for the wrapper.
    """

    module_name = namespace.get("__name__")
    if not isinstance(module_name, str):
        module_name = None
    logger = logger or logging.getLogger(module_name or __name__)
    skip_set: Set[str] = set(skip or [])

    for name, value in list(namespace.items()):
        if name in skip_set or name.startswith("_"):
            continue
        if inspect.isfunction(value) and getattr(value, "__module__", None) == module_name:
            namespace[name] = debug_log_call(logger, name=name)(value)


__all__ = ["apply_debug_logging", "debug_log_call", "format_vec3"]
