import secrets
from datetime import datetime, timezone
from typing import Any, Dict, Union

from dynamic_functions.core.compiler import parse_module
from dynamic_functions.core.schemas import (
    FunctionExport,
    FunctionModule,
    FunctionRecord,
)

# Metadata shown when the current code does not compile
FALLBACK_NAME = "function"
FALLBACK_DESCRIPTION = "unable to parse code"
# Shown when the code compiles but exports an empty description
EMPTY_DESCRIPTION = "description..."

INITIAL_FUNCTION_CODE = '''"""
Example Function Module. Each function needs you to define 4 things:
"""

# 1. Name of your function
name = "example"

# 2. Description of function, used to describe what it does to an LLM
description = "This function echoes back the input passed to it."

# 3. A JSON Schema defining the function's parameters. See:
#
#  - https://platform.openai.com/docs/guides/function-calling
#  - https://json-schema.org/learn/getting-started-step-by-step
parameters = {
    "type": "object",
    "properties": {
        "value": {
            "type": "string",
            "description": "The value to echo back",
        },
    },
    "required": ["value"],
}


# 4. The function itself. Accepts a dict matching the schema defined in
# `parameters` and returns a str. It may be declared `async`.
async def default(data):
    return data["value"]
'''


def generate_id() -> str:
    """Return a short, URL-safe, collision-resistant identifier."""
    return secrets.token_urlsafe(16)


class FunctionEntity:
    """
    A persisted function module: identity, raw source and cached metadata.

    `name`, `description` and `parameters` are a display cache of the last
    successful compile (or fallback values). Only `code` is authoritative.
    """

    def __init__(
        self,
        name: str,
        description: str,
        parameters: Any,
        code: str,
        id: Union[str, None] = None,  # pylint: disable=redefined-builtin
        date: Union[datetime, None] = None,
    ) -> None:
        self.id: str = id or generate_id()
        self.date: datetime = date or datetime.now(tz=timezone.utc)
        self.name: str = name
        self.description: str = description
        self.parameters: Any = parameters
        self.code: str = code

    def __repr__(self) -> str:
        return f"FunctionEntity(id={self.id!r}, name={self.name!r})"

    @property
    def title(self) -> str:
        """Human-facing label, e.g. `example() - This function echoes ...`"""
        return f"{self.name}() - {self.description}"

    @property
    def filename(self) -> str:
        """File name used when the code is downloaded."""
        return f"{self.name}.py"

    async def to_module(self, tmp_dir: Union[str, None] = None) -> FunctionModule:
        """Compile the current code into a runnable `FunctionModule`."""
        return await parse_module(self.code, tmp_dir)

    def apply_module_metadata(self, module: FunctionModule) -> None:
        """Refresh the cached name/description from a freshly compiled module."""
        self.name = module.name or FALLBACK_NAME
        self.description = module.description or EMPTY_DESCRIPTION

    def apply_fallback_metadata(self) -> None:
        """Mark the entity as currently unparsable. `parameters` is kept as is."""
        self.name = FALLBACK_NAME
        self.description = FALLBACK_DESCRIPTION

    def touch(self) -> None:
        self.date = datetime.now(tz=timezone.utc)

    def to_json(self) -> Dict[str, Any]:
        """Transfer representation, with the date as an ISO-8601 string."""
        return FunctionExport(
            id=self.id,
            date=self.date.isoformat(),
            name=self.name,
            description=self.description,
            parameters=self.parameters,
            code=self.code,
        ).model_dump()

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "FunctionEntity":
        export = FunctionExport.model_validate(data)
        return cls.from_db(FunctionRecord.model_validate(export.model_dump()))

    def to_db(self) -> FunctionRecord:
        """Storage representation, keeping the date as a timestamp."""
        return FunctionRecord(
            id=self.id,
            date=self.date,
            name=self.name,
            description=self.description,
            parameters=self.parameters,
            code=self.code,
        )

    @classmethod
    def from_db(cls, record: Union[FunctionRecord, Dict[str, Any]]) -> "FunctionEntity":
        if not isinstance(record, FunctionRecord):
            record = FunctionRecord.model_validate(record)
        return cls(
            id=record.id,
            date=record.date,
            name=record.name,
            description=record.description,
            parameters=record.parameters,
            code=record.code,
        )
