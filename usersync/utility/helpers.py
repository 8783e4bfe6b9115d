"""
Мелкие вспомогательные функции без зависимостей от остального приложения.
"""

import re
from typing import Optional

from usersync.shared.exceptions import ConfigurationError

_SIZE_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([kmg]?b)?\s*$", re.IGNORECASE)

_SIZE_UNITS = {
    "b": 1,
    "kb": 1024,
    "mb": 1024 ** 2,
    "gb": 1024 ** 3,
}


def parse_size(value: str) -> int:
    """
    Разобрать размер вида "100kb" / "1.5mb" / "512" в байты.

    Raises:
        ConfigurationError: строка не похожа на размер
    """
    match = _SIZE_RE.match(str(value))
    if not match:
        raise ConfigurationError(f"Invalid size: {value!r}", details={"value": value})
    number, unit = match.groups()
    return int(float(number) * _SIZE_UNITS[(unit or "b").lower()])


def mask_secret(value: Optional[str], visible: int = 0) -> str:
    """Скрыть секрет для логов."""
    if not value:
        return ""
    if visible <= 0 or len(value) <= visible:
        return "***"
    return value[:visible] + "***"
