from typing import Any

from sqlalchemy import Select, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.logging import get_logger
from core.result import Result
from models.models import TABLES, Base, row_to_dict

logger = get_logger(__name__)

type Row = dict[str, Any]
type Filters = dict[str, Any]


class StoreError(Exception):
    """store operation failed; the message is shown to the user as is."""

    def __init__(self, message: str, operation: str = "", table: str = ""):
        super().__init__(message)
        self.message = message
        self.operation = operation
        self.table = table


def _model_for(table: str) -> type[Base]:
    model = TABLES.get(table)
    if model is None:
        raise ValueError(f"Invalid table: {table}")
    return model


def _apply_filters[T: tuple[Any, ...]](
    query: Select[T], model: type[Base], filters: Filters | None
) -> Select[T]:
    for column, value in (filters or {}).items():
        attr = getattr(model, column)
        if isinstance(value, (list, tuple, set, frozenset)):
            query = query.where(attr.in_(list(value)))
        else:
            query = query.where(attr == value)
    return query


def _apply_order[T: tuple[Any, ...]](
    query: Select[T], model: type[Base], order: str | None
) -> Select[T]:
    """order is "column" or "column.desc", postgrest style."""
    if not order:
        return query
    column, _, direction = order.partition(".")
    attr = getattr(model, column)
    return query.order_by(attr.desc() if direction == "desc" else attr.asc())


def describe_store_error(exc: SQLAlchemyError) -> str:
    orig = getattr(exc, "orig", None)
    return str(orig) if orig is not None else str(exc)


def store_failure[T](operation: str, exc: SQLAlchemyError) -> Result[T]:
    """service-side counterpart of StoreError: logged, then surfaced verbatim."""
    message = describe_store_error(exc)
    logger.warning("%s failed: %s", operation, message, extra={"operation": operation})
    return Result.store_error(message)


class StoreGateway:
    """
    table-level CRUD over the relational store.

    writes go through the orm unit of work (not bulk statements) so every
    committed mutation is visible on the change feed.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def select(
        self,
        table: str,
        filters: Filters | None = None,
        order: str | None = None,
    ) -> list[Row]:
        model = _model_for(table)
        # empty membership filter can never match, skip the round trip
        if any(
            isinstance(v, (list, tuple, set, frozenset)) and not v for v in (filters or {}).values()
        ):
            return []

        query = _apply_order(_apply_filters(select(model), model, filters), model, order)
        try:
            async with self.session_factory() as session:
                result = await session.execute(query)
                return [row_to_dict(obj) for obj in result.scalars().all()]
        except SQLAlchemyError as e:
            raise self._fail("select", table, e) from e

    async def insert(self, table: str, row: Row) -> Row:
        model = _model_for(table)
        try:
            async with self.session_factory() as session:
                obj = model(**row)
                session.add(obj)
                await session.commit()
                await session.refresh(obj)
                return row_to_dict(obj)
        except SQLAlchemyError as e:
            raise self._fail("insert", table, e) from e

    async def update(self, table: str, filters: Filters, patch: Row) -> None:
        model = _model_for(table)
        query = _apply_filters(select(model), model, filters)
        try:
            async with self.session_factory() as session:
                result = await session.execute(query)
                for obj in result.scalars().all():
                    for key, value in patch.items():
                        setattr(obj, key, value)
                await session.commit()
        except SQLAlchemyError as e:
            raise self._fail("update", table, e) from e

    async def delete(self, table: str, filters: Filters) -> None:
        model = _model_for(table)
        query = _apply_filters(select(model), model, filters)
        try:
            async with self.session_factory() as session:
                result = await session.execute(query)
                for obj in result.scalars().all():
                    await session.delete(obj)
                await session.commit()
        except SQLAlchemyError as e:
            raise self._fail("delete", table, e) from e

    @staticmethod
    def _fail(operation: str, table: str, exc: SQLAlchemyError) -> StoreError:
        message = describe_store_error(exc)
        logger.warning(
            "store %s on %s failed: %s",
            operation,
            table,
            message,
            extra={"operation": operation, "table": table},
        )
        return StoreError(message, operation=operation, table=table)
