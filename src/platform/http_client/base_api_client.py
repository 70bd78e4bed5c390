"""
Base API Client - outbound JSON over HTTP

- `X-API-Key` header, JSON bodies, base URL per service
- Per-call timeout = min(client timeout, time left on the CallContext)
- Network errors and 5xx are retried (max_retries, exponential backoff); 4xx never
- Final failures raise DependencyUnavailableError (network / 5xx) or the
  matching client error (404 NotFound, 409 Conflict, other 4xx DomainError)
"""

from typing import Any, Optional

import anyio
import httpx
from pydantic import SecretStr

from src.platform.config.core_setting import settings
from src.platform.context.call_context import CallContext
from src.platform.exception.exceptions import (
    ConflictError,
    CustomBaseError,
    DependencyUnavailableError,
    DomainError,
    NotFoundError,
)
from src.platform.logging.loguru_io import Logger


def _response_body(response: httpx.Response) -> Any:
    if not response.content:
        return {}
    try:
        return response.json()
    except ValueError:
        return response.text


class BaseApiClient:
    SERVICE_NAME: str = 'http'

    def __init__(
        self,
        *,
        base_url: str,
        api_key: Optional[SecretStr] = None,
        timeout: float = 10.0,
        max_retries: int = settings.HTTP_CLIENT_MAX_RETRIES,
        backoff_base: float = settings.HTTP_CLIENT_BACKOFF_BASE,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        headers = {'Content-Type': 'application/json'}
        if api_key is not None and api_key.get_secret_value():
            headers['X-API-Key'] = api_key.get_secret_value()

        self.base_url = base_url
        self.timeout = timeout
        self.max_retries = max_retries
        self.backoff_base = backoff_base
        self._client = httpx.AsyncClient(base_url=base_url, headers=headers, transport=transport)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _get(self, path: str, *, ctx: Optional[CallContext] = None, **kwargs: Any) -> Any:
        return await self._request('GET', path, ctx=ctx, **kwargs)

    async def _post(self, path: str, *, ctx: Optional[CallContext] = None, **kwargs: Any) -> Any:
        return await self._request('POST', path, ctx=ctx, **kwargs)

    async def _put(self, path: str, *, ctx: Optional[CallContext] = None, **kwargs: Any) -> Any:
        return await self._request('PUT', path, ctx=ctx, **kwargs)

    async def _delete(self, path: str, *, ctx: Optional[CallContext] = None, **kwargs: Any) -> Any:
        return await self._request('DELETE', path, ctx=ctx, **kwargs)

    async def _request(
        self,
        method: str,
        path: str,
        *,
        ctx: Optional[CallContext] = None,
        json: Any = None,
        params: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
        timeout: Optional[float] = None,
        raw: bool = False,
    ) -> Any:
        ctx = ctx or CallContext.background()
        operation = f'{self.SERVICE_NAME} {method} {path}'
        attempts = self.max_retries + 1
        last_error: Optional[CustomBaseError] = None

        for attempt in range(1, attempts + 1):
            call_timeout = ctx.timeout_for(timeout or self.timeout, operation=operation)
            Logger.base.debug(f'🌐 [HTTP] {operation} (attempt {attempt}/{attempts})')
            try:
                response = await self._client.request(
                    method,
                    path,
                    json=json,
                    params=params,
                    headers=headers,
                    timeout=call_timeout,
                )
            except httpx.TransportError as e:
                Logger.base.warning(f'⚠️ [HTTP] {operation} failed: {type(e).__name__}: {e}')
                last_error = DependencyUnavailableError(
                    f'Service {self.SERVICE_NAME} injoignable',
                    details={'error': type(e).__name__},
                )
            else:
                Logger.base.debug(f'🌐 [HTTP] {operation} -> {response.status_code}')
                if response.status_code < 400:
                    return response.content if raw else _response_body(response)
                if response.status_code < 500:
                    raise self._client_error(response)
                Logger.base.warning(f'⚠️ [HTTP] {operation} -> {response.status_code}')
                last_error = DependencyUnavailableError(
                    f'Service {self.SERVICE_NAME} en erreur ({response.status_code})',
                    details={'status': response.status_code, 'body': _response_body(response)},
                )

            if attempt < attempts:
                await self._backoff(attempt, ctx)

        raise last_error or DependencyUnavailableError()

    async def _backoff(self, attempt: int, ctx: CallContext) -> None:
        delay = self.backoff_base * 2 ** (attempt - 1)
        remaining = ctx.remaining()
        if remaining is not None:
            delay = min(delay, max(remaining, 0))
        await anyio.sleep(delay)

    def _client_error(self, response: httpx.Response) -> CustomBaseError:
        details = {'status': response.status_code, 'body': _response_body(response)}
        if response.status_code == 404:
            return NotFoundError(f'Ressource introuvable sur {self.SERVICE_NAME}', details=details)
        if response.status_code == 409:
            return ConflictError(f'Conflit signalé par {self.SERVICE_NAME}', details=details)
        return DomainError(f'Requête refusée par {self.SERVICE_NAME}', details=details)

    async def health_check(self, *, ctx: Optional[CallContext] = None) -> dict[str, Any]:
        """Never raises: reports `healthy` / `unhealthy` with the remote body or error."""
        try:
            data = await self._request('GET', '/health', ctx=ctx, timeout=min(self.timeout, 5.0))
        except CustomBaseError as e:
            return {'status': 'unhealthy', 'service': self.SERVICE_NAME, 'error': e.message}
        return {'status': 'healthy', 'service': self.SERVICE_NAME, 'data': data}
