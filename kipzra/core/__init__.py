# kipzra/core/__init__.py

"""
Общие компоненты приложения: настройки, база данных, базовый CRUD,
зависимости FastAPI, иерархия исключений и настройка журналирования.
"""
