# kipzra/domains/imp/__init__.py

"""
Домен 'imp': импорт КИП, ЗРА и сигналов из CSV/XLSX и выгрузка в XLSX.
"""
