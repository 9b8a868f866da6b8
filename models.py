"""
Pydantic Models

Declarative descriptions of enumerable pipelines (source, lazy operations and
a terminal) plus the response shapes returned by the service.
"""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, field_validator, model_validator, ConfigDict
from datetime import datetime
from enum import Enum


MAX_RANGE_LENGTH = 1_000_000


class OperationType(str, Enum):
    """Lazy transformation stages"""
    FILTER = "filter"
    MAP = "map"
    TAKE = "take"
    TAKE_WHILE = "take_while"
    SKIP = "skip"
    SKIP_WHILE = "skip_while"


class TerminalType(str, Enum):
    """Operations that pull the pipeline"""
    TO_LIST = "to_list"
    COUNT = "count"
    REDUCE = "reduce"
    FIND = "find"
    FIRST = "first"
    SOME = "some"
    EVERY = "every"


class PredicateOp(str, Enum):
    GT = "gt"
    GE = "ge"
    LT = "lt"
    LE = "le"
    EQ = "eq"
    NE = "ne"
    EVEN = "even"
    ODD = "odd"
    DIVISIBLE_BY = "divisible_by"
    TRUTHY = "truthy"


class SelectorOp(str, Enum):
    IDENTITY = "identity"
    ADD = "add"
    SUB = "sub"
    MUL = "mul"
    FLOORDIV = "floordiv"
    MOD = "mod"
    POW = "pow"
    NEG = "neg"
    ABS = "abs"
    SQUARE = "square"
    STR = "str"


class CombineOp(str, Enum):
    ADD = "add"
    MUL = "mul"
    MIN = "min"
    MAX = "max"


class RangeSpec(BaseModel):
    """Integer progression [start, start+count); a lone start is the count"""
    start: int = Field(..., description="First value, or the count when count is omitted")
    count: Optional[int] = Field(None, description="Number of values to produce")

    @model_validator(mode="after")
    def validate_length(self):
        """Bound the number of generated values"""
        length = self.start if self.count is None else self.count
        if length > MAX_RANGE_LENGTH:
            raise ValueError(f"Range cannot produce more than {MAX_RANGE_LENGTH} values")
        return self


class SourceSpec(BaseModel):
    """Where the pipeline pulls from: literal items or a range"""
    items: Optional[List[Any]] = Field(None, description="Literal elements to wrap")
    range: Optional[RangeSpec] = Field(None, description="Generated integer range")

    @model_validator(mode="after")
    def validate_exactly_one(self):
        """Exactly one of items/range must be given"""
        if (self.items is None) == (self.range is None):
            raise ValueError("Source needs exactly one of 'items' or 'range'")
        return self


class PredicateSpec(BaseModel):
    op: PredicateOp = Field(..., description="Comparison or test to apply")
    operand: Optional[Any] = Field(None, description="Right-hand operand for binary tests")


class SelectorSpec(BaseModel):
    op: SelectorOp = Field(..., description="Transformation to apply")
    operand: Optional[Any] = Field(None, description="Right-hand operand for binary transforms")


class OperationSpec(BaseModel):
    """One lazy stage of the pipeline"""
    type: OperationType = Field(..., description="Stage type")
    predicate: Optional[PredicateSpec] = Field(None, description="For filter/take_while/skip_while")
    selector: Optional[SelectorSpec] = Field(None, description="For map")
    count: Optional[int] = Field(None, description="For take/skip")

    @model_validator(mode="after")
    def validate_argument(self):
        """Each stage type needs its own argument"""
        if self.type in (OperationType.FILTER, OperationType.TAKE_WHILE, OperationType.SKIP_WHILE):
            if self.predicate is None:
                raise ValueError(f"'{self.type.value}' requires a predicate")
        elif self.type == OperationType.MAP:
            if self.selector is None:
                raise ValueError("'map' requires a selector")
        elif self.count is None:
            raise ValueError(f"'{self.type.value}' requires a count")
        return self


class TerminalSpec(BaseModel):
    """The operation that drives the pipeline"""
    type: TerminalType = Field(TerminalType.TO_LIST, description="Terminal operation")
    predicate: Optional[PredicateSpec] = Field(None, description="For find/some/every")
    combine: Optional[CombineOp] = Field(None, description="For reduce")
    initial: Optional[Any] = Field(None, description="Initial accumulator for reduce; an explicit null seeds the fold with null")

    @model_validator(mode="after")
    def validate_argument(self):
        if self.type in (TerminalType.FIND, TerminalType.SOME, TerminalType.EVERY) and self.predicate is None:
            raise ValueError(f"'{self.type.value}' requires a predicate")
        if self.type == TerminalType.REDUCE and self.combine is None:
            raise ValueError("'reduce' requires a combine operator")
        return self


class PipelineRequest(BaseModel):
    """A full pipeline: source, stages, terminal"""
    source: SourceSpec = Field(..., description="Pipeline source")
    operations: List[OperationSpec] = Field(
        default_factory=list,
        description="Lazy stages, applied in order"
    )
    terminal: TerminalSpec = Field(
        default_factory=TerminalSpec,
        description="Terminal operation (defaults to to_list)"
    )

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "source": {"items": [1, 2, 3, 4, 5, 6]},
                "operations": [
                    {"type": "filter", "predicate": {"op": "even"}},
                    {"type": "map", "selector": {"op": "mul", "operand": 10}}
                ],
                "terminal": {"type": "to_list"}
            }
        }
    )


class PerformanceInfo(BaseModel):
    """Timing and memory of one pipeline run"""
    operation: str = Field(..., description="Label of the measured run")
    execution_time_ms: float = Field(..., description="Wall time in milliseconds", ge=0)
    memory_usage_mb: Optional[float] = Field(None, description="Peak traced memory in MB")
    pulls: int = Field(..., description="Elements pulled from the source", ge=0)


class PipelineResponse(BaseModel):
    """Result of evaluating a pipeline"""
    ok: bool = Field(True, description="Evaluation success status")
    terminal: TerminalType = Field(..., description="Terminal that produced the result")
    result: Any = Field(None, description="Terminal result")
    found: Optional[bool] = Field(None, description="For find/first/reduce: whether a value was produced")
    truncated: bool = Field(False, description="Whether to_list output hit the size cap")
    operations_applied: List[str] = Field(default_factory=list, description="Stage types in order")
    performance: PerformanceInfo
    timestamp: datetime = Field(..., description="Evaluation timestamp")


class PageResponse(BaseModel):
    """One page of a pipeline's output"""
    page_data: List[Any] = Field(default_factory=list)
    current_page: int = Field(..., ge=1)
    page_size: int = Field(..., ge=1)
    has_next_page: bool
    has_previous_page: bool
    operations_applied: List[str] = Field(default_factory=list)
    performance: PerformanceInfo


class StatusResponse(BaseModel):
    ok: bool = True
    message: str
    timestamp: datetime


class HealthResponse(BaseModel):
    healthy: bool
    total_runs: int
    failed_runs: int
    avg_time_ms: float
    process_memory_mb: float
    max_result_size: int
    timestamp: datetime


class ErrorResponse(BaseModel):
    ok: bool = False
    error: str
    error_type: str
    details: Optional[Dict[str, Any]] = None
    timestamp: datetime

    @field_validator("error")
    @classmethod
    def validate_error(cls, v):
        """Error message cannot be blank"""
        if not v or not v.strip():
            raise ValueError("Error message cannot be empty")
        return v.strip()
