# kipzra/domains/adm/schemas.py

from pydantic import BaseModel


class TableInfo(BaseModel):
    name: str
    row_count: int


class ClearTableResult(BaseModel):
    table: str
    deleted_count: int
