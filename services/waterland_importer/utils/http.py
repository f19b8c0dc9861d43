import asyncio
from typing import Optional

import httpx


def build_client(
    timeout: float,
    proxy: Optional[str] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    """
    Создаёт httpx.AsyncClient с общим таймаутом и (опционально) исходящим прокси.
    transport подменяется в тестах (httpx.MockTransport).
    """
    return httpx.AsyncClient(timeout=timeout, proxy=proxy, transport=transport)


async def send(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    timeout: float,
    **kwargs,
) -> httpx.Response:
    """
    Выполняет запрос с жёстким ограничением по времени на весь запрос целиком.

    По истечении таймаута запрос отменяется и поднимается httpx.TimeoutException,
    ответ не-2xx превращается в httpx.HTTPStatusError.
    """
    try:
        resp = await asyncio.wait_for(client.request(method, url, **kwargs), timeout=timeout)
    except asyncio.TimeoutError as e:
        raise httpx.TimeoutException(f"{method} {url} timed out after {timeout}s") from e
    resp.raise_for_status()
    return resp
