"""
Logger.io - call tracing decorator

Wraps sync and async callables: logs masked arguments and return values at
DEBUG, logs an escaping exception once (the innermost decorated frame wins),
and binds the CallContext operation of the call so that every line of one
job submission or one queue delivery can be grepped together.
"""

from collections.abc import Awaitable
from functools import wraps
from inspect import iscoroutinefunction
import types
from typing import TYPE_CHECKING, Any, Callable, ParamSpec, TypeVar, cast, overload


if TYPE_CHECKING:
    from loguru import Logger as LoguruLogger

from src.platform.config.core_setting import settings
from src.platform.context.call_context import CallContext
from src.platform.exception.exceptions import CustomBaseError
from src.platform.logging.loguru_io_config import (
    ExtraField,
    call_depth_var,
    custom_logger,
)
from src.platform.logging.loguru_io_utils import (
    build_call_target_func_path,
    get_chain_start_time,
    mask_sensitive,
    reset_call_depth,
    should_mask_keyword,
    truncate_content,
)


_F = TypeVar('_F', bound=Callable[..., Any])


def _find_context(args: tuple[Any, ...], kwargs: dict[str, Any]) -> CallContext | None:
    ctx = kwargs.get('ctx')
    if isinstance(ctx, CallContext):
        return ctx
    return next((arg for arg in args if isinstance(arg, CallContext)), None)


def describe_context(ctx: CallContext) -> str:
    remaining = ctx.remaining()
    budget = 'no deadline' if remaining is None else f'{remaining:.2f}s left'
    return f'<ctx {ctx.operation or "-"} {budget}>'


class LoguruIO:
    def __init__(
        self, custom_logger: 'LoguruLogger', *, reraise: bool = True, truncate_content: bool = False
    ) -> None:
        self._custom_logger = custom_logger
        self.reraise = reraise
        self.truncate_content = truncate_content
        self.call_target = ''
        self.depth = 2  # wrapper + helper frames

    def _enter(self, args: tuple[Any, ...], kwargs: dict[str, Any]) -> 'LoguruLogger':
        call_depth_var.set(call_depth_var.get() + 1)
        ctx = _find_context(args, kwargs)
        bound = self._custom_logger.bind(
            **{
                ExtraField.CALL_TARGET: self.call_target,
                ExtraField.CHAIN_START_TIME: get_chain_start_time(),
                ExtraField.OPERATION: ctx.operation if ctx else '',
            }
        )
        if settings.DEBUG:  # Masking is only worth paying for when the line is emitted
            bound.opt(depth=self.depth).debug(
                f'args: {self.render(args)}, kwargs: {self.render(kwargs)}'
            )
        return bound

    def _leave(self, bound: 'LoguruLogger', return_value: Any) -> None:
        if settings.DEBUG:
            bound.opt(depth=self.depth).debug(f'return: {self.render(return_value)}')

    def _fail(self, bound: 'LoguruLogger', e: Exception) -> None:
        # An exception bubbling through several decorated layers is logged once
        if getattr(e, '_has_logged', False):
            return
        try:
            e._has_logged = True  # type: ignore[attr-defined]
        except AttributeError:
            pass
        if isinstance(e, CustomBaseError):
            bound.opt(depth=self.depth).error(f'{type(e).__name__} [{e.code}]: {e}')
        else:
            bound.opt(depth=self.depth).exception(f'{type(e).__name__}: {e}')

    def _hide_from_traceback(self, func: Callable[..., Any]) -> Callable[..., Any]:
        func.__code__ = func.__code__.replace(  # type: ignore[attr-defined]
            co_filename=cast(types.FunctionType, self._custom_logger.catch).__code__.co_filename
        )
        return func

    def render(self, data: Any) -> Any:
        if isinstance(data, CallContext):
            return describe_context(data)
        if isinstance(data, dict):
            rendered: Any = {
                key: self.render(should_mask_keyword(key, value)) for key, value in data.items()
            }
        elif isinstance(data, list | tuple):
            rendered = type(data)(self.render(item) for item in data)
        else:
            rendered = mask_sensitive(data)

        if self.truncate_content:
            return truncate_content(rendered)
        return rendered

    def __call__(self, func: _F) -> _F:
        self.call_target = build_call_target_func_path(func)

        if iscoroutinefunction(func):

            @wraps(func)
            async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
                bound = self._enter(args, kwargs)
                try:
                    return_value = await cast(Awaitable[Any], func(*args, **kwargs))
                except Exception as e:
                    self._fail(bound, e)
                    if self.reraise:
                        raise
                    return None
                else:
                    self._leave(bound, return_value)
                    return return_value
                finally:
                    reset_call_depth()

            return cast(_F, self._hide_from_traceback(async_wrapper))

        @wraps(func)
        def sync_wrapper(*args: Any, **kwargs: Any) -> Any:
            bound = self._enter(args, kwargs)
            try:
                return_value = func(*args, **kwargs)
            except Exception as e:
                self._fail(bound, e)
                if self.reraise:
                    raise
                return None
            else:
                self._leave(bound, return_value)
                return return_value
            finally:
                reset_call_depth()

        return cast(_F, self._hide_from_traceback(sync_wrapper))


_P = ParamSpec('_P')
_T = TypeVar('_T')


class Logger:
    base = custom_logger

    @overload
    @staticmethod
    def io(func: Callable[_P, _T]) -> Callable[_P, _T]: ...

    @overload
    @staticmethod
    def io(func: None = ..., *, reraise: bool = ..., truncate_content: bool = ...) -> LoguruIO: ...

    @staticmethod
    def io(
        func: Callable[_P, _T] | None = None, *, reraise: bool = True, truncate_content: bool = True
    ) -> Callable[_P, _T] | LoguruIO:
        decorator = LoguruIO(
            custom_logger=custom_logger, reraise=reraise, truncate_content=truncate_content
        )
        return decorator(func) if func else decorator
