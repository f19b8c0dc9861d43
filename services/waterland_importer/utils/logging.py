import sys
from loguru import logger
from config import settings

# Время | уровень | модуль:функция:строка - сообщение
LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)

_configured = False


def setup_logging():
    """
    Один раз за процесс подключает loguru к stdout импортёра.

    Импорт запускается внешним планировщиком на один цикл
    (fetch -> transform -> import), и весь отчёт о цикле, включая итоговую
    строку с кодом выхода, должен попасть в вывод этого запуска.
    Уровень берётся из LOG_LEVEL; модули etl вызывают функцию при импорте,
    поэтому повторный вызов не добавляет второй sink.
    """
    global _configured
    if _configured:
        return logger

    # Стандартный sink loguru пишет в stderr
    logger.remove()
    level = settings.LOG_LEVEL.upper()
    logger.add(
        sys.stdout,
        colorize=True,
        format=LOG_FORMAT,
        level=level,
        enqueue=True,        # сообщения из корутин fetch/import через одну очередь
        backtrace=False,
        diagnose=False,      # без значений локальных переменных (в них учётные данные)
    )

    _configured = True
    logger.info(f"📜 Waterland importer logging ready: level={level}")
    return logger
