"""Job message models.

A queue message wraps a ``JobMessage``: the job's metadata plus the batch of
records to embed. ``JobMeta.params`` stays an opaque dict on the wire and is
parsed into ``JobParams`` by the executor, so a bad parameter set fails the
job rather than the queue read.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator


class TableMethod(str, Enum):
    """Where embeddings are written back."""
    APPEND = "append"
    JOIN = "join"


class InputRecord(BaseModel):
    """One source row to embed."""
    model_config = ConfigDict(populate_by_name=True)

    primary_key: str = Field(
        ...,
        validation_alias=AliasChoices("record_id", "primary_key"),
        description="String-encoded primary key of the source row",
    )
    inputs: str = Field(..., description="Text to embed")
    token_estimate: int = Field(0, description="Approximate token count of ``inputs``")

    @field_validator("primary_key", mode="before")
    @classmethod
    def _stringify_key(cls, value: Any) -> Any:
        # integer keys arrive unquoted from json_build_object
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value


class JobParams(BaseModel):
    """Parameters of a vectorize job, parsed from ``JobMeta.params``."""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    schema_name: str = Field(..., alias="schema", description="Target schema")
    table: Optional[str] = Field(None, description="Source table; required for append")
    columns: List[str] = Field(default_factory=list, description="Source text columns")
    update_time_col: Optional[str] = Field(None, description="Change-tracking column on the source")
    table_method: TableMethod = Field(..., description="Write-back strategy")
    primary_key: str = Field(..., description="Primary key column of the source table")
    pkey_type: str = Field(..., description="SQL type name used to cast key values")
    api_key: Optional[str] = Field(None, description="Provider API key for this job")
    schedule: Optional[str] = Field(None, description="Refresh schedule (unused by the worker)")

    @model_validator(mode="after")
    def _require_table_for_append(self) -> "JobParams":
        if self.table_method == TableMethod.APPEND and not self.table:
            raise ValueError("'table' is required when table_method is 'append'")
        return self


class JobMeta(BaseModel):
    """Job definition as stored in the job registry."""
    model_config = ConfigDict(extra="ignore")

    job_id: Optional[int] = None
    name: str = Field(..., description="Job (project) name; prefixes embedding columns/tables")
    job_type: Optional[str] = None
    transformer: str = Field(..., description="Embedding model identifier")
    search_alg: Optional[str] = None
    params: Dict[str, Any] = Field(default_factory=dict)
    last_completion: Optional[datetime] = None


class JobMessage(BaseModel):
    """Payload of one queue message."""
    model_config = ConfigDict(extra="ignore")

    job_name: str
    job_meta: JobMeta
    inputs: List[InputRecord]


class QueueMessage(BaseModel):
    """A message read from the queue, with its delivery bookkeeping.

    ``message`` is kept as the raw JSON object; it is validated into a
    ``JobMessage`` by the executor so that an unreadable payload counts as a
    failed attempt instead of failing every read.
    """
    msg_id: int
    read_ct: int
    enqueued_at: Optional[datetime] = None
    vt: Optional[datetime] = None
    message: Dict[str, Any] = Field(default_factory=dict)

    @property
    def job_name(self) -> Optional[str]:
        return self.message.get("job_name")


class PairedEmbedding(BaseModel):
    """An input record's primary key joined with its embedding vector."""
    primary_key: str
    embeddings: List[float]
