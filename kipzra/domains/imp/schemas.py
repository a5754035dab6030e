# kipzra/domains/imp/schemas.py

from typing import List
from pydantic import BaseModel, Field


class ImportResultRead(BaseModel):
    """Итог импорта файла."""
    file_name: str
    imported: int = Field(0, description="Обработано строк")
    created_devices: int = Field(0, description="Создано новых устройств")
    created_signals: int = Field(0, description="Создано новых сигналов")
    skipped: int = Field(0, description="Пропущено строк")
    warnings: List[str] = Field(default_factory=list)


class ImportStats(BaseModel):
    devices: int = 0
    kips: int = 0
    zras: int = 0
    signals: int = 0
    assignments: int = 0
