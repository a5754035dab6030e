# kipzra/core/crud_base.py

"""
Базовый класс асинхронных CRUD-операций (Create, Read, Update, Delete).
"""

import logging
from typing import Generic, List, Optional, Type, TypeVar, Any, Dict, Union

from sqlalchemy import delete as sa_delete
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import SQLModel, select
from sqlmodel.ext.asyncio.session import AsyncSession
from pydantic import BaseModel

from kipzra.core.exceptions import ConflictError, PersistenceError

ModelType = TypeVar("ModelType", bound=SQLModel)
CreateSchemaType = TypeVar("CreateSchemaType", bound=BaseModel)
UpdateSchemaType = TypeVar("UpdateSchemaType", bound=BaseModel)

logger = logging.getLogger(__name__)


class CRUDBase(Generic[ModelType, CreateSchemaType, UpdateSchemaType]):
    """
    Общие операции над одной таблицей.
    """
    def __init__(self, model: Type[ModelType]):
        self.model = model

    async def get(self, db: AsyncSession, id: Any) -> Optional[ModelType]:
        """Запись по первичному ключу."""
        return await db.get(self.model, id)

    async def get_by_attribute(
        self, db: AsyncSession, *, attribute: str, value: Any
    ) -> Optional[ModelType]:
        statement = select(self.model).where(getattr(self.model, attribute) == value)
        response = await db.execute(statement)
        return response.scalar_one_or_none()

    async def get_filtered(
        self,
        db: AsyncSession,
        *,
        filters: Optional[Dict[str, Any]] = None,
        order_by_field: Optional[str] = None,
        order_desc: bool = False,
        skip: int = 0,
        limit: Optional[int] = 100
    ) -> List[ModelType]:
        """
        Выборка по нескольким атрибутам с сортировкой и постраничным выводом.
        Значение None в filters пропускается (фильтр не задан).
        """
        query = select(self.model)
        conditions = []

        if filters:
            for attribute, value in filters.items():
                if value is None:
                    continue
                if hasattr(self.model, attribute):
                    conditions.append(getattr(self.model, attribute) == value)
                else:
                    logger.warning("Model %s has no attribute '%s'", self.model.__name__, attribute)

        if conditions:
            query = query.where(*conditions)

        if order_by_field and hasattr(self.model, order_by_field):
            column = getattr(self.model, order_by_field)
            query = query.order_by(column.desc() if order_desc else column)
        elif order_by_field:
            logger.warning("Model %s has no attribute '%s' for ordering", self.model.__name__, order_by_field)
        elif hasattr(self.model, 'id'):
            query = query.order_by(self.model.id)

        query = query.offset(skip)
        if limit is not None:
            query = query.limit(limit)

        result = await db.execute(query)
        return result.scalars().all()

    async def create(self, db: AsyncSession, *, obj_in: Union[CreateSchemaType, Dict[str, Any]]) -> ModelType:
        """
        Создаёт запись. Нарушение уникальности превращается в ConflictError.
        """
        db_obj = self.model.model_validate(obj_in)
        db.add(db_obj)
        try:
            await db.commit()
        except IntegrityError as e:
            await db.rollback()
            logger.warning("Integrity error while creating %s: %s", self.model.__name__, e.orig)
            raise ConflictError(f"{self.model.__name__} violates a uniqueness constraint", kind="duplicate") from e
        except SQLAlchemyError as e:
            await db.rollback()
            raise PersistenceError() from e
        await db.refresh(db_obj)
        return db_obj

    async def update(
        self, db: AsyncSession, *, db_obj: ModelType, obj_in: Union[UpdateSchemaType, Dict[str, Any]]
    ) -> ModelType:
        """
        Частичное обновление: меняются только переданные поля.
        """
        if isinstance(obj_in, dict):
            update_data = obj_in
        else:
            update_data = obj_in.model_dump(exclude_unset=True)
        for key, value in update_data.items():
            setattr(db_obj, key, value)

        db.add(db_obj)
        try:
            await db.commit()
        except IntegrityError as e:
            await db.rollback()
            logger.warning("Integrity error while updating %s: %s", self.model.__name__, e.orig)
            raise ConflictError(f"{self.model.__name__} violates a uniqueness constraint", kind="duplicate") from e
        except SQLAlchemyError as e:
            await db.rollback()
            raise PersistenceError() from e
        await db.refresh(db_obj)
        return db_obj

    async def delete(self, db: AsyncSession, *, id: Any) -> Optional[ModelType]:
        """
        Удаляет запись по ID; возвращает удалённый объект или None.
        """
        db_obj = await db.get(self.model, id)
        if db_obj:
            await db.delete(db_obj)
            try:
                await db.commit()
            except SQLAlchemyError as e:
                await db.rollback()
                raise PersistenceError() from e
        return db_obj

    async def delete_where(self, db: AsyncSession, *conditions: Any) -> int:
        """
        Удаляет записи по условию без фиксации транзакции.
        Возвращает число удалённых строк; commit выполняет вызывающий код.
        """
        statement = sa_delete(self.model)
        if conditions:
            statement = statement.where(*conditions)
        result = await db.execute(statement)
        return result.rowcount or 0
