from datetime import datetime, timezone
from typing import Any, Callable
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)


class FunctionModule(BaseModel):
    """
    Compiled result of a function module's source text.

    - `name` (str): Identifier for the function.
    - `description` (str): Text describing what the function does, for humans and LLMs.
    - `parameters` (Any): JSON-Schema-shaped declaration of the accepted arguments.
    - `callable` (Callable): The function body. May be a coroutine function.

    Instances are only built after every export has been checked, so a
    `FunctionModule` is never partially populated.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str
    description: str
    parameters: Any
    callable: Callable[..., Any]

    @field_validator("parameters")
    @classmethod
    def ensure_parameters(cls, v):
        """Parameters only need to be present, no schema validation is done."""
        if v is None:
            raise ValueError("parameters cannot be None.")
        return v


class FunctionRecord(BaseModel):
    """
    Represents a stored function record, as kept in the `functions` table.
    """

    id: str = Field(..., min_length=1, description="Unique identifier of the function.")
    date: datetime = Field(
        default_factory=lambda: datetime.now(tz=timezone.utc),
        description="When the function was created or last saved.",
    )
    name: str = Field(..., description="Cached name of the function.")
    description: str = Field(..., description="Cached description of the function.")
    parameters: Any = Field(
        None, description="Cached JSON Schema of the function's parameters."
    )
    code: str = Field(..., description="Raw source text of the function module.")

    @field_validator("date")
    @classmethod
    def ensure_timezone(cls, v: datetime) -> datetime:
        """Naive timestamps coming back from the database are UTC."""
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @classmethod
    def from_orm(cls, obj):
        """Convert ORM model instance to Pydantic model."""
        return cls(
            id=str(obj.id),
            date=obj.date,
            name=obj.name,
            description=obj.description,
            parameters=obj.parameters,
            code=obj.code,
        )


class FunctionExport(BaseModel):
    """
    Transfer representation of a function, used for export/import and API payloads.
    The date is kept as an ISO-8601 string.
    """

    id: str
    date: str
    name: str
    description: str
    parameters: Any = None
    code: str

    @field_validator("date")
    @classmethod
    def ensure_iso_date(cls, v: str) -> str:
        """Reject dates that are not ISO-8601."""
        try:
            datetime.fromisoformat(v)
        except ValueError as exc:
            raise ValueError(f"date must be an ISO-8601 string, got {v!r}") from exc
        return v
