from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock
import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from dynamic_functions.core.db_access import (
    get_function_from_db,
    get_all_functions_from_db,
    upsert_function_in_db,
    delete_function_from_db,
)
from dynamic_functions.core.schemas import FunctionRecord
from dynamic_functions.models.db_model import FunctionModel


def make_row(function_id="f1", name="echo"):
    row = MagicMock(spec=FunctionModel)
    row.id = function_id
    row.date = datetime(2024, 1, 1, 12, 0, 0)
    row.name = name
    row.description = "Echoes input."
    row.parameters = {"type": "object"}
    row.code = "default = 42"
    return row


@pytest.fixture
def mock_db_session():
    """Fixture to provide a properly mocked AsyncSession."""
    session = AsyncMock(spec=AsyncSession)
    session.execute.return_value = AsyncMock()
    return session


@pytest.mark.asyncio
async def test_get_function_from_db(mock_db_session):
    """Test fetching a single function by id."""
    mock_db_session.get.return_value = make_row()

    result = await get_function_from_db(mock_db_session, FunctionModel, "f1")

    mock_db_session.get.assert_awaited_once_with(FunctionModel, "f1")
    assert isinstance(result, FunctionRecord)
    assert result.id == "f1"
    assert result.date.tzinfo == timezone.utc


@pytest.mark.asyncio
async def test_get_function_from_db_not_found(mock_db_session):
    """Test fetching a non-existing function returns None."""
    mock_db_session.get.return_value = None

    result = await get_function_from_db(mock_db_session, FunctionModel, "missing")

    assert result is None



@pytest.mark.asyncio
async def test_get_all_functions_from_db(mock_db_session):
    """Test listing all functions."""
    mock_scalars_result = MagicMock()
    mock_scalars_result.all.return_value = [make_row("a"), make_row("b")]

    mock_result = MagicMock()
    mock_result.scalars.return_value = mock_scalars_result
    mock_db_session.execute.return_value = mock_result

    result = await get_all_functions_from_db(mock_db_session, FunctionModel)

    assert [record.id for record in result] == ["a", "b"]


@pytest.mark.asyncio
async def test_upsert_function_in_db(mock_db_session):
    """Test upsert merges an ORM object with a naive UTC date."""
    record = FunctionRecord(
        id="f1",
        date=datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc),
        name="echo",
        description="d",
        parameters={},
        code="default = 42",
    )

    await upsert_function_in_db(mock_db_session, FunctionModel, record)

    mock_db_session.merge.assert_awaited_once()
    merged = mock_db_session.merge.call_args.args[0]
    assert isinstance(merged, FunctionModel)
    assert merged.id == "f1"
    assert merged.date == datetime(2024, 1, 1, 12, 0, 0)
    assert merged.code == "default = 42"


@pytest.mark.asyncio
@pytest.mark.parametrize("rowcount, expected", [(1, True), (0, False)])
async def test_delete_function_from_db(mock_db_session, rowcount, expected):
    """Test deletion reports whether a row was removed."""
    mock_result = MagicMock()
    mock_result.rowcount = rowcount
    mock_db_session.execute.return_value = mock_result

    result = await delete_function_from_db(mock_db_session, FunctionModel, "f1")

    assert result is expected
    mock_db_session.execute.assert_awaited_once()
