# kipzra/__init__.py

"""
Главный пакет FastAPI-приложения справочника КИП и ЗРА.

Пакет состоит из точки входа (main.py), подпакета core с общими
настройками, подключением к базе данных, журналированием и ошибками,
и подпакета domains, где каждая предметная область (проекты, справочник
устройств, сигналы, импорт/экспорт, обслуживание БД) вынесена в
отдельный модуль.
"""

APP_NAME = "KIP/ZRA Registry API"
APP_VERSION = "0.1.0"
API_PREFIX = "/api/v1"  # общий префикс маршрутов API (применяется в main.py)

__version__ = APP_VERSION
__title__ = APP_NAME
__description__ = "Reference data service for instrumentation (KIP) and valve/actuator (ZRA) equipment."
__license__ = "MIT"
__all__ = []
