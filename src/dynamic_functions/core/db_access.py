import logging
from datetime import timezone
from typing import List, Union
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import delete, select
from sqlalchemy.orm import DeclarativeMeta

from dynamic_functions.core.schemas import FunctionRecord

logger = logging.getLogger(__name__)


def _to_naive_utc(record: FunctionRecord) -> dict:
    """Dump a record for the ORM, storing the date as naive UTC."""
    data = record.model_dump()
    data["date"] = record.date.astimezone(timezone.utc).replace(tzinfo=None)
    return data


async def get_function_from_db(
    session: AsyncSession, model: DeclarativeMeta, function_id: str
) -> Union[FunctionRecord, None]:
    """
    Retrieve a single function record by id.

    Returns:
        FunctionRecord, or None if no record has this id.
    """
    obj = await session.get(model, function_id)
    if obj is None:
        logger.debug(f"No function found for id='{function_id}'.")
        return None

    return FunctionRecord.from_orm(obj)


async def get_all_functions_from_db(
    session: AsyncSession, model: DeclarativeMeta
) -> List[FunctionRecord]:
    """Retrieve every stored function, most recently saved first."""
    query = select(model).order_by(model.date.desc())
    result = await session.execute(query)
    functions = result.scalars().all()

    return [FunctionRecord.from_orm(obj) for obj in functions]


async def upsert_function_in_db(
    session: AsyncSession, model: DeclarativeMeta, record: FunctionRecord
) -> FunctionRecord:
    """
    Inserts or replaces a function record, keyed by its id.

    Args:
        session (AsyncSession): SQLAlchemy async database session.
        model (DeclarativeMeta): Database model.
        record (FunctionRecord): The record to store.
    """
    obj = model(**_to_naive_utc(record))

    await session.merge(obj)

    logger.debug(f"✅ Upserted function: id={record.id}, name={record.name}")
    return record


async def delete_function_from_db(
    session: AsyncSession, model: DeclarativeMeta, function_id: str
) -> bool:
    """
    Delete a function record. Deleting a missing id is not an error.

    Return: True if resource deleted, otherwise False
    """
    query = delete(model).where(model.id == function_id)

    result = await session.execute(query)

    deleted_count = result.rowcount  # Check number of rows affected
    if deleted_count:
        logger.info(f"Deleted function id='{function_id}'.")
        return True
    logger.info(f"No function found for id='{function_id}'.")
    return False
