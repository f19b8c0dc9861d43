from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, ConfigDict


# ---------- Конфигурация компонентов ----------


class FetcherConfig(BaseModel):
    """
    Параметры загрузчика данных из WaterLand API.
    Передаются в DataFetcher при создании (см. Settings.fetcher_config).
    """
    base_url: str = Field(description="Базовый URL WaterLand API")
    access_token: str = Field(description="Токен доступа, подставляется в путь запроса")
    timeout: float = Field(default=30.0, gt=0, description="Таймаут одного запроса, сек")
    proxy: Optional[str] = Field(default=None, description="Исходящий прокси (если нужен)")
    payload_key: Optional[str] = Field(
        default=None,
        description="Ключ, под которым источник оборачивает показания датчика",
    )


class ImporterConfig(BaseModel):
    """
    Параметры отправки пачки в ingress дашборда.
    """
    ingress_url: str = Field(description="URL ingress-эндпоинта дашборда")
    username: str = Field(default="", description="Basic-Auth логин")
    password: str = Field(default="", description="Basic-Auth пароль")
    timeout: float = Field(default=30.0, gt=0)
    proxy: Optional[str] = None
    retry_attempts: int = Field(default=3, ge=1, description="Всего попыток отправки")
    retry_delay: float = Field(default=1.0, ge=0, description="Шаг линейной задержки, сек")
    envelope_field: Optional[str] = Field(
        default="sensorInfo",
        description="Имя поля-обёртки для массива; None — отправляем голый массив",
    )


# ---------- Данные источника (WaterLand) ----------


class SiteInfo(BaseModel):
    """
    Описание площадки мониторинга из индекса /api/{token}.
    Координаты приходят строками, поэтому приводим их к числу уже при трансформации.
    Числовое имя площадки допускается и приводится к строке.
    """
    site_name: Optional[str] = None
    position_latitude: Optional[Any] = None
    position_longitude: Optional[Any] = None
    project_site_id: Optional[Any] = None

    # Остальные поля площадки сохраняем как есть
    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)


class TokenResponse(BaseModel):
    """
    Индекс площадок. Элементы sites не валидируются здесь:
    каждая площадка проверяется отдельно при загрузке её данных.
    """
    sites: Optional[List[Any]] = None


class RawSensorRecord(BaseModel):
    """
    Последние показания одной площадки вместе с её описанием
    (описание прикрепляется на этапе загрузки).
    """
    site_info: Optional[SiteInfo] = None
    data: Optional[Dict[str, Any]] = Field(
        default=None,
        description="Пейлоад датчика: device_name, timestamp, water_depth|water_level, voltage, ...",
    )


# ---------- Данные приёмника (дашборд) ----------


class StationTags(BaseModel):
    station_id: str = Field(alias="StationID")
    latitude: float = Field(default=0, alias="Latitude")
    longitude: float = Field(default=0, alias="Longitude")
    location: str = Field(alias="Location")
    is_camera_only: bool = Field(default=False, alias="isCameraOnly")

    model_config = ConfigDict(populate_by_name=True)


class SensorObject(BaseModel):
    """
    Метрики станции в формате дашборда (сериализуется в строку objectJSON).
    Поля flowmeter*/pressure/tide/moisture этим источником не измеряются и всегда 0.
    """
    water_level: float = Field(alias="waterLevel")
    battery_voltage: float = Field(alias="batteryVoltage")
    version: int = 2
    rain_gauge_drop: float = Field(default=0, alias="rainGaugeDrop")
    flowmeter_level: int = Field(default=0, alias="flowmeterLevel")
    flowmeter_flow: int = Field(default=0, alias="flowmeterFlow")
    flowmeter_velocity: int = Field(default=0, alias="flowmeterVelocity")
    pressure: int = 0
    tide: int = 0
    ac: int = 0
    rssi: float = 0
    ultrasonic: float = 0
    moisture: int = 0
    timestamp: Any = None
    device_type: Optional[Any] = Field(default=None, alias="deviceType")
    project_site_id: Optional[Any] = Field(default=None, alias="projectSiteId")

    model_config = ConfigDict(populate_by_name=True)


class SensorInfo(BaseModel):
    """
    Запись станции для ingress дашборда.
    stationID / deviceName / devEUI в этой интеграции совпадают.
    """
    station_id: str = Field(alias="stationID")
    device_name: str = Field(alias="deviceName")
    dev_eui: str = Field(alias="devEUI")
    tags: StationTags
    published_at: Optional[str] = Field(default=None, alias="publishedAt")
    object_json: str = Field(alias="objectJSON")

    model_config = ConfigDict(populate_by_name=True)

    def to_payload(self) -> Dict[str, Any]:
        """Словарь в том виде, в котором его ждёт ingress (camelCase, без пустых полей)."""
        return self.model_dump(by_alias=True, exclude_none=True)


# ---------- Результаты этапов ----------


class InvalidRecord(BaseModel):
    """
    Маркер отброшенной записи: причина и идентификаторы для лога.
    """
    reason: str
    device_name: Optional[Any] = None
    project_site_id: Optional[Any] = None


class ProcessResult(BaseModel):
    """
    Результат валидации и трансформации пачки.
    """
    processed: int = Field(description="Сколько сырых записей было обработано")
    created: int = Field(description="Сколько записей прошло валидацию и трансформацию")
    skipped: int = Field(description="Сколько записей отброшено")
    records: List[SensorInfo] = Field(default_factory=list)
    details: List[str] = Field(
        default_factory=list,
        description="Причины отбрасывания записей",
    )


class ImportResult(BaseModel):
    success: bool
    record_count: int = Field(alias="recordCount")

    model_config = ConfigDict(populate_by_name=True)
