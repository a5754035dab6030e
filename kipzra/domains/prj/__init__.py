# kipzra/domains/prj/__init__.py

"""
Домен 'prj': проекты, разделяющие данные справочника на рабочие наборы.
"""
