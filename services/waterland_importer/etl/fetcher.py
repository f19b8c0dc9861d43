import asyncio
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from schemas import FetcherConfig, RawSensorRecord, SiteInfo, TokenResponse
from utils.http import build_client, send
from utils.logging import setup_logging

logger = setup_logging()


class DataFetcher:
    """
    Загрузчик последних показаний датчиков из WaterLand API.

    Сначала по токену получает список площадок, затем параллельно
    запрашивает последние данные каждой площадки. Ошибка по отдельной
    площадке не прерывает загрузку — площадка просто пропускается.
    """

    def __init__(
        self,
        config: FetcherConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config
        self.transport = transport
        self.base_url = config.base_url.rstrip("/")

    def _token_url(self) -> str:
        return f"{self.base_url}/api/{self.config.access_token}"

    def _latest_url(self, site_name: str) -> str:
        return f"{self._token_url()}/{quote(site_name, safe='')}/data/latest"

    async def get_token_data(self, client: httpx.AsyncClient) -> TokenResponse:
        """
        Запрашивает индекс площадок. Любая ошибка здесь фатальна для цикла.
        """
        try:
            resp = await send(client, "GET", self._token_url(), self.config.timeout)
            return TokenResponse.model_validate(resp.json())
        except httpx.HTTPStatusError as e:
            logger.error(
                f"❌ Error fetching token data: HTTP {e.response.status_code} "
                f"{e.response.reason_phrase}"
            )
            raise
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"❌ Error fetching token data: {e}")
            raise

    def _unwrap(self, body: Any) -> Dict[str, Any]:
        key = self.config.payload_key
        if key and isinstance(body, dict) and isinstance(body.get(key), dict):
            return body[key]
        if isinstance(body, dict):
            return body
        return {}

    async def get_sensor_data(
        self,
        client: httpx.AsyncClient,
        entry: Any,
    ) -> Optional[RawSensorRecord]:
        """
        Последние показания одной площадки; None, если описание площадки
        некорректно или запрос не удался.
        """
        try:
            site = SiteInfo.model_validate(entry)
        except ValidationError as e:
            logger.error(f"❌ Malformed site entry skipped: {entry!r} ({e.error_count()} errors)")
            return None

        if not site.site_name:
            logger.warning(f"⚠️ Site without site_name skipped: {site.model_dump()}")
            return None

        url = self._latest_url(site.site_name)
        logger.debug(f"🌊 Fetching sensor data: site={site.site_name}")
        try:
            resp = await send(client, "GET", url, self.config.timeout)
            body = resp.json()
        except httpx.HTTPStatusError as e:
            logger.error(
                f"❌ Sensor data request failed: site={site.site_name}, "
                f"status={e.response.status_code}"
            )
            return None
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"❌ Sensor data request failed: site={site.site_name}, error={e}")
            return None

        return RawSensorRecord(site_info=site, data=self._unwrap(body))

    async def fetch(self) -> List[RawSensorRecord]:
        logger.info(f"📡 Fetching data from WaterLand API: {self.base_url}")

        async with build_client(self.config.timeout, self.config.proxy, self.transport) as client:
            token_data = await self.get_token_data(client)

            if not token_data.sites:
                logger.warning("⚠️ No sites found in token response")
                return []

            logger.info(f"📍 Sites retrieved from WaterLand API: {len(token_data.sites)}")

            # Каждая площадка пишет только в свой слот результата
            results = await asyncio.gather(
                *(self.get_sensor_data(client, entry) for entry in token_data.sites),
                return_exceptions=True,
            )

        records: List[RawSensorRecord] = []
        for entry, result in zip(token_data.sites, results):
            if isinstance(result, BaseException):
                logger.error(f"❌ Unexpected error for site={entry!r}: {result!r}")
            elif result is not None:
                records.append(result)

        failed = len(results) - len(records)
        if failed:
            logger.warning(f"⚠️ Some sensor data requests failed: failed={failed}")

        logger.info(f"✅ Data fetched successfully: records={len(records)}")
        return records
