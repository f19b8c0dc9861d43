import math
import re
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Optional, Union

from config import settings
from schemas import (
    InvalidRecord,
    ProcessResult,
    RawSensorRecord,
    SensorInfo,
    SensorObject,
    SiteInfo,
    StationTags,
)
from utils.logging import setup_logging
from utils.timezones import resolve_timezone

logger = setup_logging()

# Ведущая числовая часть строки: "3.5", "-2", "12abc" -> 12, "1e3"
_NUMBER_PREFIX = re.compile(r"^\s*[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")
_EPOCH = re.compile(r"^\s*\d+(?:\.\d+)?\s*$")

# Выше этого порога метка времени считается в миллисекундах
_EPOCH_MS_THRESHOLD = 1e11


# ---------- Приведение значений ----------


def string_to_float(value: Any) -> float:
    """
    Приводит значение источника к float.
    None, пустая строка и нечисловые значения дают 0.
    """
    if value is None or value == "" or isinstance(value, bool):
        return 0.0

    if isinstance(value, (int, float)):
        num = float(value)
    else:
        match = _NUMBER_PREFIX.match(str(value))
        if not match:
            return 0.0
        num = float(match.group(0))

    return num if math.isfinite(num) else 0.0


def ac_indicator(voltage: Any) -> int:
    """Индикатор AC: floor(voltage / 100), 0 если напряжения нет."""
    if not voltage:
        return 0
    return math.floor(string_to_float(voltage) / 100)


def select_water_level(data: Dict[str, Any]) -> float:
    """
    water_depth приоритетнее water_level, даже если равен "0".
    """
    if data.get("water_depth") is not None:
        return string_to_float(data["water_depth"])
    return string_to_float(data.get("water_level"))


def derive_station_id(data: Dict[str, Any], site: Optional[SiteInfo]) -> str:
    """
    ID станции: device_name датчика, иначе начало имени площадки
    до первого пробела ("RK005 (Lin Shing Road 2)" -> "RK005"),
    иначе project_site_id.
    """
    device_name = data.get("device_name")
    if device_name:
        return str(device_name)

    site_name = site.site_name if site else None
    if site_name:
        prefix = site_name.split(" ", 1)[0]
        if prefix:
            return prefix

    project_site_id = data.get("project_site_id") or (site.project_site_id if site else None)
    if project_site_id:
        return str(project_site_id)

    raise ValueError("cannot derive station id")


def to_iso8601(value: Any, timezone_name: str = "UTC") -> Optional[str]:
    """
    Переводит метку времени источника в ISO-8601 (UTC, миллисекунды, суффикс Z).

    Понимает ISO-строки, "YYYY-MM-DD HH:MM:SS" и epoch в секундах/миллисекундах.
    Время без зоны трактуется в timezone_name. Нераспознанное значение -> None,
    неизвестная зона -> ValueError.
    """
    if value is None or isinstance(value, bool):
        return None

    try:
        if isinstance(value, (int, float)) or (isinstance(value, str) and _EPOCH.match(value)):
            seconds = float(value)
            if seconds > _EPOCH_MS_THRESHOLD:
                seconds /= 1000
            dt = datetime.fromtimestamp(seconds, tz=timezone.utc)
        elif isinstance(value, str):
            dt = datetime.fromisoformat(value.strip())
        else:
            return None
    except (ValueError, OverflowError, OSError):
        return None

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=resolve_timezone(timezone_name))

    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


# ---------- Валидация и трансформация ----------


def validate_record(record: RawSensorRecord) -> Optional[str]:
    """
    Проверяет обязательные поля записи.
    Возвращает причину отказа или None, если запись валидна.
    """
    if record.site_info is None:
        return "missing site info"
    if not record.data:
        return "missing sensor data"
    if not record.site_info.project_site_id:
        return "missing project_site_id"
    if not record.data.get("device_name"):
        return "missing device_name"
    if not record.data.get("timestamp"):
        return "missing timestamp"
    return None


def transform(record: RawSensorRecord, timezone_name: str = "UTC") -> SensorInfo:
    """
    Переводит валидную запись WaterLand в формат ingress дашборда.
    """
    data = record.data or {}
    site = record.site_info

    station_id = derive_station_id(data, site)
    location = (site.site_name if site else None) or station_id
    water_level = select_water_level(data)
    project_site_id = data.get("project_site_id") or (site.project_site_id if site else None)

    metrics = SensorObject(
        water_level=water_level,
        battery_voltage=string_to_float(data.get("voltage")),
        rain_gauge_drop=string_to_float(data.get("hko_rain_data")),
        ac=ac_indicator(data.get("voltage")),
        rssi=string_to_float(data.get("signal_value")),
        ultrasonic=water_level,
        timestamp=data.get("timestamp"),
        device_type=data.get("device_type"),
        project_site_id=project_site_id,
    )

    transformed = SensorInfo(
        station_id=station_id,
        device_name=station_id,
        dev_eui=station_id,
        tags=StationTags(
            station_id=station_id,
            latitude=string_to_float(site.position_latitude if site else None),
            longitude=string_to_float(site.position_longitude if site else None),
            location=location,
        ),
        published_at=to_iso8601(data.get("timestamp"), timezone_name),
        object_json=metrics.model_dump_json(by_alias=True, exclude_none=True),
    )

    logger.debug(
        f"🔁 Record transformed: station={station_id}, location={location}, "
        f"water_level={water_level}"
    )
    return transformed


def process_record(
    record: Union[RawSensorRecord, Dict[str, Any]],
    timezone_name: str = "UTC",
) -> Union[SensorInfo, InvalidRecord]:
    """
    Обрабатывает одну запись изолированно: ошибка в ней не влияет на остальные.
    """
    try:
        if isinstance(record, dict):
            record = RawSensorRecord.model_validate(record)

        data = record.data or {}
        reason = validate_record(record)
        if reason:
            logger.warning(
                f"⚠️ Record validation failed ({reason}): "
                f"device_name={data.get('device_name')}, "
                f"project_site_id={data.get('project_site_id')}"
            )
            return InvalidRecord(
                reason=reason,
                device_name=data.get("device_name"),
                project_site_id=data.get("project_site_id"),
            )

        return transform(record, timezone_name)
    except Exception as e:
        raw = record.get("data") if isinstance(record, dict) else getattr(record, "data", None)
        data = raw if isinstance(raw, dict) else {}
        logger.error(
            f"❌ Error processing individual record: {e!r}, "
            f"device_name={data.get('device_name')}"
        )
        return InvalidRecord(
            reason=f"transform error: {e}",
            device_name=data.get("device_name"),
            project_site_id=data.get("project_site_id"),
        )


def process_data(
    records: Iterable[RawSensorRecord],
    timezone_name: Optional[str] = None,
) -> ProcessResult:
    """
    Валидирует и трансформирует всю пачку.

    Отдельные записи с ошибками отбрасываются и попадают в details;
    исключение поднимается только если сама последовательность не итерируется
    или зона timezone_name неизвестна.
    """
    timezone_name = timezone_name or settings.SOURCE_TIMEZONE
    resolve_timezone(timezone_name)
    items = list(records)
    logger.info(f"🧹 Processing data with validation and transformation: records={len(items)}")

    valid: list[SensorInfo] = []
    details: list[str] = []
    for item in items:
        outcome = process_record(item, timezone_name)
        if isinstance(outcome, InvalidRecord):
            details.append(
                f"{outcome.reason} (device_name={outcome.device_name}, "
                f"project_site_id={outcome.project_site_id})"
            )
        else:
            valid.append(outcome)

    result = ProcessResult(
        processed=len(items),
        created=len(valid),
        skipped=len(items) - len(valid),
        records=valid,
        details=details,
    )

    logger.info(
        f"✅ Data processed: total={result.processed}, valid={result.created}, "
        f"invalid={result.skipped}"
    )
    return result
