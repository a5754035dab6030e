# kipzra/utils/__init__.py
