import asyncio
from typing import Any, Awaitable, Callable, List, Optional, Sequence

import httpx

from schemas import ImportResult, ImporterConfig, SensorInfo
from utils.http import build_client, send
from utils.logging import setup_logging

logger = setup_logging()


class DataImporter:
    """
    Отправка трансформированной пачки в ingress дашборда одним POST-запросом.

    При любой ошибке (сеть, таймаут, ответ не-2xx) запрос повторяется
    до config.retry_attempts раз с линейной задержкой retry_delay * attempt.
    """

    def __init__(
        self,
        config: ImporterConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.config = config
        self.transport = transport
        self.sleep = sleep

    def build_body(self, records: Sequence[SensorInfo]) -> Any:
        items: List[dict] = [r.to_payload() for r in records]
        if self.config.envelope_field:
            return {self.config.envelope_field: items}
        return items

    async def _post_with_retry(self, client: httpx.AsyncClient, body: Any, record_count: int) -> httpx.Response:
        attempts = self.config.retry_attempts

        for attempt in range(1, attempts + 1):
            try:
                return await send(
                    client,
                    "POST",
                    self.config.ingress_url,
                    self.config.timeout,
                    json=body,
                    auth=(self.config.username, self.config.password),
                    headers={"Content-Type": "application/json"},
                )
            except Exception as e:
                if attempt == attempts:
                    logger.error(f"❌ Import failed after {attempt} attempts: {e!r}")
                    raise

                delay = self.config.retry_delay * attempt
                logger.warning(
                    f"🔁 Import attempt {attempt}/{attempts} failed, retrying in {delay:.1f}s: "
                    f"records={record_count}, error={e!r}"
                )
                await self.sleep(delay)

        raise RuntimeError("retry loop finished without a response")

    async def import_data(self, records: Sequence[SensorInfo]) -> ImportResult:
        logger.info(
            f"📤 Importing data to dashboard: url={self.config.ingress_url}, "
            f"records={len(records)}"
        )

        if not records:
            logger.info("📭 No data to import")
            return ImportResult(success=True, record_count=0)

        body = self.build_body(records)
        async with build_client(self.config.timeout, self.config.proxy, self.transport) as client:
            resp = await self._post_with_retry(client, body, len(records))

        try:
            response_body: Any = resp.json()
        except ValueError:
            response_body = resp.text

        logger.info(
            f"✅ Data import completed: records={len(records)}, response={response_body}"
        )
        return ImportResult(success=True, record_count=len(records))
