# kipzra/domains/sig/__init__.py

"""
Домен 'sig': сигналы AI/AO/DI/DO, их назначения устройствам,
счётчики по типам устройств, сводка и массовое назначение по типу.
"""
