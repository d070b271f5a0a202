"""Infrastructure-level decorators used by provider HTTP clients."""

from __future__ import annotations

import functools
import time
from typing import Any, Callable, Iterable, Optional, Tuple, Type, TypeVar

from aiauth.infrastructure import log_utils

TFunc = TypeVar("TFunc", bound=Callable[..., Any])


def retry_on_network_error(
    should_retry: Callable[[Any, int], bool],
    *,
    exception_types: Iterable[Type[BaseException]] = (),
) -> Callable[[TFunc], TFunc]:
    """Retry decorator with exponential backoff for transient failures.

    Parameters
    ----------
    should_retry:
        Callable that accepts ``self`` and an HTTP status code, returning ``True``
        when the request should be retried.
    exception_types:
        Exception types intercepted by the decorator. Exceptions without a
        ``status_code`` (connection errors, timeouts) are always retried.

    The decorated method's owner supplies ``max_retries`` and ``backoff_base``
    attributes; the first positional argument is logged as the operation name.
    """

    exception_tuple: Tuple[Type[BaseException], ...] = tuple(exception_types)

    def decorator(func: TFunc) -> TFunc:
        @functools.wraps(func)
        def wrapper(self: Any, *args: Any, **kwargs: Any) -> Any:
            max_retries: int = max(1, getattr(self, "max_retries", 1))
            backoff_base: float = getattr(self, "backoff_base", 0.0)

            last_exc: Optional[BaseException] = None

            for attempt in range(max_retries):
                try:
                    return func(self, *args, **kwargs)
                except exception_tuple as exc:  # type: ignore[misc]
                    last_exc = exc
                    status_code: Optional[int] = getattr(exc, "status_code", None)

                    retry_allowed = True
                    if status_code is not None:
                        retry_allowed = should_retry(self, status_code)

                    if not retry_allowed or attempt == max_retries - 1:
                        raise

                    operation = _extract_arg("grant_type", 0, args, kwargs)
                    sleep_for = backoff_base * (2 ** attempt)

                    if status_code is None:
                        log_utils.warn(
                            f"[retry] network error during {operation}: {exc!r}, "
                            f"retrying in {sleep_for:.2f}s...",
                            tag="HTTP",
                        )
                    else:
                        log_utils.warn(
                            f"[retry] transient {status_code} during {operation}, "
                            f"retrying in {sleep_for:.2f}s...",
                            tag="HTTP",
                        )

                    if sleep_for > 0:
                        time.sleep(sleep_for)

            if last_exc is not None:
                raise last_exc

            raise RuntimeError("retry_on_network_error failed without executing the function.")

        return wrapper  # type: ignore[return-value]

    return decorator


def _extract_arg(name: str, position: int, args: tuple[Any, ...], kwargs: dict[str, Any]) -> Any:
    """Helper to extract positional/keyword arguments for logging."""

    if position < len(args):
        return args[position]
    if name in kwargs:
        return kwargs[name]
    return "<unknown>"
