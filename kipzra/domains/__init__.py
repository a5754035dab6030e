# kipzra/domains/__init__.py

"""
Предметные области приложения.

- prj: проекты
- ref: справочник устройств, детали КИП/ЗРА, дерево оборудования, наборы фильтров
- sig: сигналы, назначения, счётчики по типам, сводка и массовое назначение
- imp: импорт CSV/XLSX и экспорт XLSX
- adm: обслуживание таблиц базы данных
"""
