# kipzra/domains/ref/__init__.py

"""
Домен 'ref': справочник устройств, детали КИП и ЗРА, дерево оборудования
и сохранённые наборы фильтров.
"""
