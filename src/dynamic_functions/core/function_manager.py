import os
from typing import Any, Dict, List, Union
from sqlalchemy.orm import DeclarativeMeta
from dynamic_functions.core.db_access import (
    get_function_from_db,
    get_all_functions_from_db,
    upsert_function_in_db,
    delete_function_from_db,
)
from dynamic_functions.core.db_operation import db_operation
from dynamic_functions.core.compiler import ModuleCompileError, parse_module
from dynamic_functions.core.function_entity import (
    FunctionEntity,
    INITIAL_FUNCTION_CODE,
)
from dynamic_functions.core.data_conversion import (
    load_functions_file,
    convert_functions,
    unwrap_functions,
)

from dynamic_functions.core.logger import logger


class FunctionManager:
    """
    Manages the lifecycle of function modules stored in a database.
    """

    def __init__(
        self,
        db_session_factory: callable,
        function_model: DeclarativeMeta,
        tmp_dir: Union[str, None] = None,
        input_file_path: Union[str, None] = None,
    ) -> None:
        self.db_session_factory = db_session_factory
        self.function_model: DeclarativeMeta = function_model
        self.tmp_dir: Union[str, None] = tmp_dir
        self.input_file_path: Union[str, None] = input_file_path

    async def initialize(self) -> None:
        """
        Seed the store from `input_file_path` when it holds no functions yet.
        """
        logger.info("Initializing FunctionManager...")
        existing = await self.list_functions()

        if (
            not existing
            and self.input_file_path
            and os.path.exists(self.input_file_path)
        ):
            try:
                functions = load_functions_file(self.input_file_path)
                await self.import_functions(functions)
            except ValueError as e:
                logger.error(f"Failed to load functions file: {e}")

        logger.info("FunctionManager initialized.")

    async def parse(self, code: str) -> FunctionEntity:
        """
        Compile `code` and wrap it in a new, unsaved entity.

        Raises:
            ModuleCompileError: If the code is not a valid function module.
        """
        module = await parse_module(code, self.tmp_dir)
        return FunctionEntity(
            name=module.name,
            description=module.description,
            parameters=module.parameters,
            code=code,
        )

    async def create_function(self, code: str = INITIAL_FUNCTION_CODE) -> FunctionEntity:
        """Parse and store a brand-new function, starting from the example module."""
        func = await self.parse(code)
        await self.save(func)
        return func

    async def find(self, function_id: str) -> Union[FunctionEntity, None]:
        """Look up a function by id. Returns None if it does not exist."""

        async def fetch_function(session):
            return await get_function_from_db(session, self.function_model, function_id)

        record = await db_operation(self.db_session_factory, fetch_function)
        if record is None:
            return None

        return FunctionEntity.from_db(record)

    async def list_functions(self) -> List[FunctionEntity]:
        """All stored functions, most recently saved first."""

        async def fetch_functions(session):
            return await get_all_functions_from_db(session, self.function_model)

        records = await db_operation(self.db_session_factory, fetch_functions)
        return [FunctionEntity.from_db(record) for record in records or []]

    async def save(self, func: FunctionEntity) -> FunctionEntity:
        """
        Store `func`, refreshing its date and cached metadata.

        The code is recompiled first. If that fails, the entity is still
        stored, with fallback name/description and its previous parameters.
        Only storage errors propagate.
        """
        func.touch()

        try:
            module = await func.to_module(self.tmp_dir)
        except ModuleCompileError as e:
            logger.warning(f"⚠️ Saving function {func.id} with unparsable code: {e}")
            func.apply_fallback_metadata()
        else:
            func.apply_module_metadata(module)

        record = func.to_db()

        async def store_function(session):
            return await upsert_function_in_db(session, self.function_model, record)

        await db_operation(self.db_session_factory, store_function)

        logger.info(f"✅ Function saved: [{func.id}] -> {func.name}")
        return func

    async def delete(self, function_id: str) -> None:
        """Delete a function. Missing ids are ignored."""
        func = await self.find(function_id)
        if func is None:
            logger.info(f"No function to delete for id='{function_id}'.")
            return

        async def remove_function(session):
            return await delete_function_from_db(
                session, self.function_model, function_id
            )

        await db_operation(self.db_session_factory, remove_function)

        logger.info(f"✅ Deleted function: [{function_id}]")

    async def export_code(self, function_id: str) -> Union[str, None]:
        """Raw source of a function, for copying or downloading."""
        func = await self.find(function_id)
        return func.code if func else None

    async def export_functions(
        self,
        ids: Union[List[str], None] = None,
        fmt: str = "json",
        as_bytes: bool = False,
        raw: bool = False,
    ) -> Union[str, bytes, List[Dict[str, Any]]]:
        """
        Export functions as a formatted string (JSON, YAML, or TOML), or return raw data if `raw=True`.
        - If `ids` is None, export all functions.
        """
        functions = await self.list_functions()
        if ids is not None:
            functions = [func for func in functions if func.id in ids]

        data = [func.to_json() for func in functions]

        if raw:
            return data

        if not data:
            return b"" if as_bytes else ""

        result = convert_functions(data, fmt)
        return result.encode() if as_bytes else result

    async def import_functions(
        self, functions: Union[List[Dict[str, Any]], Dict[str, Any]]
    ) -> List[FunctionEntity]:
        """
        Store exported functions **atomically**, keeping their ids and dates.

        Args:
            functions: A list of transfer-shaped functions, or `{"functions": [...]}`.

        Returns:
            List[FunctionEntity]: The imported entities.
        """
        entities = [FunctionEntity.from_json(data) for data in unwrap_functions(functions)]

        async def db_transaction(session):
            for func in entities:
                await upsert_function_in_db(session, self.function_model, func.to_db())

        await db_operation(self.db_session_factory, db_transaction)

        logger.info(f"✅ Imported {len(entities)} functions.")
        return entities
