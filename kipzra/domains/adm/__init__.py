# kipzra/domains/adm/__init__.py

"""
Домен 'adm': обслуживание таблиц базы данных (просмотр и очистка).
"""
