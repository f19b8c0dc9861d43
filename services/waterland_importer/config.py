import os
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings

from schemas import FetcherConfig, ImporterConfig
from utils.timezones import resolve_timezone


class Settings(BaseSettings):
    """
    Конфигурация waterland_importer — однопроходного импорта
    показаний датчиков из WaterLand API в дашборд мониторинга.
    """

    # --- Общая информация ---
    SERVICE_NAME: str = "Waterland Importer"
    VERSION: str = "1.0.0"
    ENV: str = os.getenv("ENV", "dev")

    # --- Источник данных (WaterLand API) ---
    WATERLAND_API_BASE_URL: str = os.getenv("WATERLAND_API_BASE_URL", "")
    WATERLAND_API_ACCESS_TOKEN: str = os.getenv("WATERLAND_API_ACCESS_TOKEN", "")
    SENSOR_PAYLOAD_KEY: Optional[str] = os.getenv("SENSOR_PAYLOAD_KEY") or None
    SOURCE_TIMEZONE: str = os.getenv("SOURCE_TIMEZONE", "UTC")

    # --- Приёмник данных (ingress дашборда) ---
    DASHBOARD_INGRESS_URL: str = os.getenv("DASHBOARD_INGRESS_URL", "")
    DASHBOARD_INGRESS_USERNAME: str = os.getenv("DASHBOARD_INGRESS_USERNAME", "")
    DASHBOARD_INGRESS_PASSWORD: str = os.getenv("DASHBOARD_INGRESS_PASSWORD", "")
    INGRESS_ENVELOPE_FIELD: str = os.getenv("INGRESS_ENVELOPE_FIELD", "sensorInfo")

    # --- Поведение HTTP ---
    REQUEST_TIMEOUT: float = 30.0        # таймаут одного запроса, сек
    OUTBOUND_PROXY_URL: Optional[str] = os.getenv("OUTBOUND_PROXY_URL") or None
    IMPORT_RETRY_ATTEMPTS: int = 3       # всего попыток отправки пачки
    IMPORT_RETRY_DELAY: float = 1.0      # шаг линейной задержки, сек

    # --- Логирование ---
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

    @field_validator("SOURCE_TIMEZONE")
    @classmethod
    def check_source_timezone(cls, value: str) -> str:
        # Неизвестная зона — ошибка конфигурации при старте
        resolve_timezone(value)
        return value

    def fetcher_config(self) -> FetcherConfig:
        return FetcherConfig(
            base_url=self.WATERLAND_API_BASE_URL,
            access_token=self.WATERLAND_API_ACCESS_TOKEN,
            timeout=self.REQUEST_TIMEOUT,
            proxy=self.OUTBOUND_PROXY_URL or None,
            payload_key=self.SENSOR_PAYLOAD_KEY or None,
        )

    def importer_config(self) -> ImporterConfig:
        return ImporterConfig(
            ingress_url=self.DASHBOARD_INGRESS_URL,
            username=self.DASHBOARD_INGRESS_USERNAME,
            password=self.DASHBOARD_INGRESS_PASSWORD,
            timeout=self.REQUEST_TIMEOUT,
            proxy=self.OUTBOUND_PROXY_URL or None,
            retry_attempts=self.IMPORT_RETRY_ATTEMPTS,
            retry_delay=self.IMPORT_RETRY_DELAY,
            envelope_field=self.INGRESS_ENVELOPE_FIELD or None,
        )


# Экземпляр настроек (используется по всему сервису)
settings = Settings()
