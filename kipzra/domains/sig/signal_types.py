# kipzra/domains/sig/signal_types.py

"""
Приведение текстовых обозначений типа сигнала к AI / AO / DI / DO.

Используется явная таблица синонимов, дополняемая кодами из справочника
signal_types. Значение, которого нет ни там, ни там,
не угадывается: вызывающий код получает None и сообщает об ошибке
(API) или предупреждении (импорт).
"""

import re
from typing import Dict, Mapping, Optional

from kipzra.domains.sig.models import SignalType

SIGNAL_TYPE_ALIASES: Dict[str, SignalType] = {
    "AI": SignalType.AI,
    "AO": SignalType.AO,
    "DI": SignalType.DI,
    "DO": SignalType.DO,
    # кириллические буквы, похожие на латинские
    "АI": SignalType.AI,
    "АО": SignalType.AO,
    "AО": SignalType.AO,
    "DО": SignalType.DO,
    "ANALOG INPUT": SignalType.AI,
    "ANALOG OUTPUT": SignalType.AO,
    "DIGITAL INPUT": SignalType.DI,
    "DIGITAL OUTPUT": SignalType.DO,
    "DISCRETE INPUT": SignalType.DI,
    "DISCRETE OUTPUT": SignalType.DO,
    "АНАЛОГОВЫЙ ВХОД": SignalType.AI,
    "АНАЛОГОВЫЙ ВЫХОД": SignalType.AO,
    "ДИСКРЕТНЫЙ ВХОД": SignalType.DI,
    "ДИСКРЕТНЫЙ ВЫХОД": SignalType.DO,
    "ЦИФРОВОЙ ВХОД": SignalType.DI,
    "ЦИФРОВОЙ ВЫХОД": SignalType.DO,
    "АВ": SignalType.AI,
    "ДВ": SignalType.DI,
    # интерфейсные сигналы учитываются как дискретные входы
    "SNMP": SignalType.DI,
    "MODBUS": SignalType.DI,
    "TCP": SignalType.DI,
}

_WHITESPACE = re.compile(r"[\s_]+")


def normalize_token(raw: Optional[str]) -> str:
    """Обозначение без лишних пробелов, в верхнем регистре."""
    if raw is None:
        return ""
    return _WHITESPACE.sub(" ", str(raw)).strip().upper()


def normalize_signal_type(
    raw: Optional[str], extra_aliases: Optional[Mapping[str, SignalType]] = None
) -> Optional[SignalType]:
    """
    Тип сигнала по таблице синонимов или None, если значение неизвестно.
    extra_aliases - коды из справочника signal_types; встроенные синонимы
    имеют приоритет.
    """
    token = normalize_token(raw)
    if not token:
        return None
    signal_type = SIGNAL_TYPE_ALIASES.get(token)
    if signal_type is None and extra_aliases:
        signal_type = extra_aliases.get(token)
    return signal_type
