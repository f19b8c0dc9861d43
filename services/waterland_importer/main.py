# services/waterland_importer/main.py

import asyncio
import sys
import time
from typing import Optional

import httpx

from config import Settings, settings
from etl.fetcher import DataFetcher
from etl.importer import DataImporter
from etl.processor import process_data
from utils.logging import setup_logging


# --- Логирование ---
logger = setup_logging()


async def run_import_cycle(
    cfg: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> int:
    """
    Один цикл импорта: WaterLand -> валидация/трансформация -> ingress дашборда.

    Возвращает код завершения процесса: 0 при успехе, 1 при любой
    неперехваченной ошибке (индекс площадок недоступен, исчерпаны попытки импорта).
    """
    cfg = cfg or settings

    logger.info(f"🚀 Starting {cfg.SERVICE_NAME} (env={cfg.ENV})")
    logger.info(
        f"⚙️ Import handler initialized: source={cfg.WATERLAND_API_BASE_URL}, "
        f"ingress={cfg.DASHBOARD_INGRESS_URL}, username={cfg.DASHBOARD_INGRESS_USERNAME}"
    )

    start = time.monotonic()
    try:
        fetcher = DataFetcher(cfg.fetcher_config(), transport=transport)
        importer = DataImporter(cfg.importer_config(), transport=transport)

        raw_records = await fetcher.fetch()
        processed = process_data(raw_records, cfg.SOURCE_TIMEZONE)
        result = await importer.import_data(processed.records)
    except Exception as e:
        duration_ms = int((time.monotonic() - start) * 1000)
        logger.exception(f"💥 Error during import cycle: {e!r} (duration_ms={duration_ms})")
        return 1

    duration_ms = int((time.monotonic() - start) * 1000)
    logger.info(
        f"🏁 Import cycle completed: fetched={processed.processed}, "
        f"imported={result.record_count}, skipped={processed.skipped}, "
        f"duration_ms={duration_ms}"
    )
    return 0


def run() -> None:
    """Точка входа для cron / docker: код возврата процесса = результат цикла."""
    exit_code = asyncio.run(run_import_cycle())
    # Дожидаемся вывода очереди loguru (enqueue=True) до выхода
    logger.complete()
    sys.exit(exit_code)


if __name__ == "__main__":
    run()
