# tests/domains/__init__.py

"""
Тесты по доменам приложения:
- `test_prj.py`: проекты
- `test_ref.py`, `test_ref_tree.py`: справочник устройств и дерево оборудования
- `test_sig.py`: сигналы, сводка и массовое назначение
- `test_imp.py`: импорт и выгрузка файлов
- `test_adm.py`: очистка таблиц
"""
