"""
Utility functions for the enumerable pipeline service

Compiles declarative pipeline specs into Enumerable chains, runs them, and
keeps in-process performance metrics for every run.
"""

import os
import gc
import time
import logging
import operator
import tracemalloc
from typing import Any, Callable, Dict, List, Optional, Tuple

import psutil

from enumerable import Enumerable, EnumerableStatic, NOTHING
from models import (
    CombineOp,
    OperationSpec,
    OperationType,
    PipelineRequest,
    PredicateOp,
    PredicateSpec,
    SelectorOp,
    SelectorSpec,
    SourceSpec,
    TerminalSpec,
    TerminalType,
)

# ---------- Configuration ----------

LOG_LEVEL = os.environ.get("ENUMERABLE_LOG_LEVEL", "INFO").upper()
MAX_RESULT_SIZE = int(os.environ.get("ENUMERABLE_MAX_RESULT_SIZE", "10000"))
TRACK_MEMORY = os.environ.get("ENUMERABLE_TRACK_MEMORY", "1") != "0"

# Configure logging
logging.basicConfig(level=getattr(logging, LOG_LEVEL, logging.INFO))
logger = logging.getLogger(__name__)


class PipelineError(ValueError):
    """Raised when a pipeline spec cannot be compiled or evaluated"""


# Global performance tracking
_performance_metrics = {
    "total_time_ms": 0.0,
    "total_memory_mb": 0.0,
    "operation_count": 0,
    "error_count": 0
}


class PullCounter:
    """Iterator wrapper counting how many elements were pulled from a source"""

    def __init__(self, iterable):
        self._iterator = iter(iterable)
        self.pulls = 0

    def __iter__(self):
        return self

    def __next__(self):
        item = next(self._iterator)
        self.pulls += 1
        return item


def _record(performance_info: Dict[str, Any]):
    _performance_metrics["total_time_ms"] += performance_info["execution_time_ms"]
    _performance_metrics["total_memory_mb"] += performance_info["memory_usage_mb"] or 0.0
    _performance_metrics["operation_count"] += 1
    if not performance_info["success"]:
        _performance_metrics["error_count"] += 1


def _finish(operation_name: str, start_time: float, owns_tracing: bool,
            success: bool, error: Optional[str] = None) -> Dict[str, Any]:
    execution_time_ms = (time.perf_counter() - start_time) * 1000

    memory_mb = None
    if owns_tracing:
        _, peak = tracemalloc.get_traced_memory()
        tracemalloc.stop()
        memory_mb = peak / 1024 / 1024

    performance_info = {
        "operation": operation_name,
        "execution_time_ms": execution_time_ms,
        "memory_usage_mb": memory_mb,
        "success": success,
        "timestamp": time.time()
    }
    if error is not None:
        performance_info["error"] = error
    _record(performance_info)
    return performance_info


def measure_performance(operation_name: str, func: Callable, *args, **kwargs) -> Tuple[Any, Dict[str, Any]]:
    """Run func, returning its result together with timing/memory info"""

    # Only own tracemalloc when nobody else is tracing
    owns_tracing = TRACK_MEMORY and not tracemalloc.is_tracing()
    if owns_tracing:
        tracemalloc.start()
        gc.collect()

    start_time = time.perf_counter()

    try:
        result = func(*args, **kwargs)
    except Exception as e:
        _finish(operation_name, start_time, owns_tracing, success=False, error=str(e))
        raise

    return result, _finish(operation_name, start_time, owns_tracing, success=True)


def get_performance_summary() -> Dict[str, Any]:
    """Get summary of all performance metrics"""
    if _performance_metrics["operation_count"] == 0:
        return {
            "total_operations": 0,
            "failed_operations": 0,
            "total_time_ms": 0.0,
            "total_memory_mb": 0.0,
            "avg_time_ms": 0.0,
            "avg_memory_mb": 0.0
        }

    return {
        "total_operations": _performance_metrics["operation_count"],
        "failed_operations": _performance_metrics["error_count"],
        "total_time_ms": _performance_metrics["total_time_ms"],
        "total_memory_mb": _performance_metrics["total_memory_mb"],
        "avg_time_ms": _performance_metrics["total_time_ms"] / _performance_metrics["operation_count"],
        "avg_memory_mb": _performance_metrics["total_memory_mb"] / _performance_metrics["operation_count"]
    }


def clear_performance_metrics():
    """Clear all performance metrics"""
    global _performance_metrics
    _performance_metrics = {
            "total_time_ms": 0.0,
        "total_memory_mb": 0.0,
        "operation_count": 0,
        "error_count": 0
    }


# ---------- Spec compilation ----------

_BINARY_PREDICATES = {
    PredicateOp.GT: operator.gt,
    PredicateOp.GE: operator.ge,
    PredicateOp.LT: operator.lt,
    PredicateOp.LE: operator.le,
    PredicateOp.EQ: operator.eq,
    PredicateOp.NE: operator.ne,
}

_BINARY_SELECTORS = {
    SelectorOp.ADD: operator.add,
    SelectorOp.SUB: operator.sub,
    SelectorOp.MUL: operator.mul,
    SelectorOp.FLOORDIV: operator.floordiv,
    SelectorOp.MOD: operator.mod,
    SelectorOp.POW: operator.pow,
}

_UNARY_SELECTORS = {
    SelectorOp.IDENTITY: lambda x: x,
    SelectorOp.NEG: operator.neg,
    SelectorOp.ABS: operator.abs,
    SelectorOp.SQUARE: lambda x: x * x,
    SelectorOp.STR: str,
}


def _require_operand(op_name: str, operand: Any) -> Any:
    if operand is None:
        raise PipelineError(f"'{op_name}' requires an operand")
    return operand


def compile_predicate(spec: PredicateSpec) -> Callable[[Any], bool]:
    """Turn a PredicateSpec into a one-argument predicate"""
    if spec.op in _BINARY_PREDICATES:
        compare = _BINARY_PREDICATES[spec.op]
        operand = _require_operand(spec.op.value, spec.operand)
        return lambda x: compare(x, operand)

    if spec.op == PredicateOp.EVEN:
        return lambda x: x % 2 == 0
    if spec.op == PredicateOp.ODD:
        return lambda x: x % 2 != 0
    if spec.op == PredicateOp.DIVISIBLE_BY:
        divisor = _require_operand(spec.op.value, spec.operand)
        if divisor == 0:
            raise PipelineError("'divisible_by' operand cannot be 0")
        return lambda x: x % divisor == 0
    if spec.op == PredicateOp.TRUTHY:
        return bool

    raise PipelineError(f"Unknown predicate: {spec.op}")


def compile_selector(spec: SelectorSpec) -> Callable[[Any], Any]:
    """Turn a SelectorSpec into a one-argument transform"""
    if spec.op in _UNARY_SELECTORS:
        return _UNARY_SELECTORS[spec.op]

    if spec.op in _BINARY_SELECTORS:
        apply = _BINARY_SELECTORS[spec.op]
        operand = _require_operand(spec.op.value, spec.operand)
        if spec.op in (SelectorOp.FLOORDIV, SelectorOp.MOD) and operand == 0:
            raise PipelineError(f"'{spec.op.value}' operand cannot be 0")
        return lambda x: apply(x, operand)

    raise PipelineError(f"Unknown selector: {spec.op}")


def compile_combine(op: CombineOp, initial: Any = NOTHING) -> Tuple[Callable[[Any, Any], Any], Any]:
    """Return (combine, initial) for reduce.

    An omitted initial is passed as NOTHING; an explicit None seeds the fold
    with None. min/max without an initial value adopt the first element, so
    an empty source reduces to NOTHING.
    """
    if op == CombineOp.ADD:
        return operator.add, 0 if initial is NOTHING else initial
    if op == CombineOp.MUL:
        return operator.mul, 1 if initial is NOTHING else initial

    pick = min if op == CombineOp.MIN else max

    def combine(acc, x):
        return x if acc is NOTHING else pick(acc, x)

    return combine, initial


# ---------- Pipeline building ----------

def build_source(source: SourceSpec, factory: EnumerableStatic = Enumerable) -> Tuple[Enumerable, PullCounter]:
    """Create the root sequence, wrapped so pulls on it are counted"""
    if source.items is not None:
        counter = PullCounter(source.items)
    else:
        counter = PullCounter(factory.range(source.range.start, source.range.count))
    return factory.from_iterable(counter), counter


def apply_operations(sequence: Enumerable, operations: List[OperationSpec]) -> Tuple[Enumerable, List[str]]:
    """Chain the lazy stages onto sequence; nothing is pulled here"""
    applied = []

    for op in operations:
        if op.type == OperationType.FILTER:
            sequence = sequence.filter(compile_predicate(op.predicate))
        elif op.type == OperationType.MAP:
            sequence = sequence.map(compile_selector(op.selector))
        elif op.type == OperationType.TAKE:
            sequence = sequence.take(op.count)
        elif op.type == OperationType.TAKE_WHILE:
            sequence = sequence.take_while(compile_predicate(op.predicate))
        elif op.type == OperationType.SKIP:
            sequence = sequence.skip(op.count)
        elif op.type == OperationType.SKIP_WHILE:
            sequence = sequence.skip_while(compile_predicate(op.predicate))
        else:
            raise PipelineError(f"Unknown operation: {op.type}")
        applied.append(op.type.value)

    logger.debug(f"Built pipeline: {' -> '.join(applied) or '(no stages)'}")
    return sequence, applied


def run_terminal(sequence: Enumerable, terminal: TerminalSpec,
                 max_result_size: int = MAX_RESULT_SIZE) -> Dict[str, Any]:
    """Drive sequence with the terminal operation and package the outcome"""
    outcome = {"result": None, "found": None, "truncated": False}

    if terminal.type == TerminalType.TO_LIST:
        items = sequence.take(max_result_size + 1).to_list()
        outcome["truncated"] = len(items) > max_result_size
        outcome["result"] = items[:max_result_size]
    elif terminal.type == TerminalType.COUNT:
        outcome["result"] = sequence.count()
    elif terminal.type == TerminalType.REDUCE:
        initial = terminal.initial if "initial" in terminal.model_fields_set else NOTHING
        combine, seed = compile_combine(terminal.combine, initial)
        value = sequence.reduce(combine, seed)
        outcome["found"] = value is not NOTHING
        outcome["result"] = value if outcome["found"] else None
    elif terminal.type in (TerminalType.FIND, TerminalType.FIRST):
        if terminal.type == TerminalType.FIND:
            value = sequence.find(compile_predicate(terminal.predicate), NOTHING)
        else:
            value = sequence.first(NOTHING)
        outcome["found"] = value is not NOTHING
        outcome["result"] = value if outcome["found"] else None
    elif terminal.type == TerminalType.SOME:
        outcome["result"] = sequence.some(compile_predicate(terminal.predicate))
    elif terminal.type == TerminalType.EVERY:
        outcome["result"] = sequence.every(compile_predicate(terminal.predicate))
    else:
        raise PipelineError(f"Unknown terminal: {terminal.type}")

    return outcome


def evaluate_pipeline(request: PipelineRequest, max_result_size: Optional[int] = None) -> Dict[str, Any]:
    """Build and run a full pipeline, measuring the run"""
    if max_result_size is None:
        max_result_size = MAX_RESULT_SIZE

    sequence, counter = build_source(request.source)
    sequence, applied = apply_operations(sequence, request.operations)
    label = f"pipeline_{request.terminal.type.value}"

    try:
        outcome, performance = measure_performance(
            label, run_terminal, sequence, request.terminal, max_result_size
        )
    except (TypeError, ArithmeticError) as e:
        logger.error(f"Pipeline {label} failed after {counter.pulls} pulls: {e}")
        raise PipelineError(f"Pipeline evaluation failed: {e}") from e

    logger.info(
        f"Evaluated {label} over {len(applied)} stages in "
        f"{performance['execution_time_ms']:.2f}ms ({counter.pulls} pulls)"
    )

    outcome.update({
        "terminal": request.terminal.type,
        "operations_applied": applied,
        "performance": {
            "operation": label,
            "execution_time_ms": performance["execution_time_ms"],
            "memory_usage_mb": performance["memory_usage_mb"],
            "pulls": counter.pulls
        }
    })
    return outcome


def paginate_pipeline(request: PipelineRequest, page_number: int, page_size: int) -> Dict[str, Any]:
    """Return one page (1-indexed) of a pipeline's output, ignoring its terminal"""
    if page_number < 1:
        raise PipelineError("Page number must be >= 1")
    if page_size < 1:
        raise PipelineError("Page size must be >= 1")
    if page_size > MAX_RESULT_SIZE:
        raise PipelineError(f"Page size cannot exceed {MAX_RESULT_SIZE}")

    sequence, counter = build_source(request.source)
    sequence, applied = apply_operations(sequence, request.operations)
    offset = (page_number - 1) * page_size
    # one extra element tells whether another page follows
    window = sequence.skip(offset).take(page_size + 1)
    label = f"pagination_page_{page_number}_size_{page_size}"

    try:
        items, performance = measure_performance(label, window.to_list)
    except (TypeError, ArithmeticError) as e:
        logger.error(f"Pagination {label} failed after {counter.pulls} pulls: {e}")
        raise PipelineError(f"Pipeline evaluation failed: {e}") from e

    return {
        "page_data": items[:page_size],
        "current_page": page_number,
        "page_size": page_size,
        "has_next_page": len(items) > page_size,
        "has_previous_page": page_number > 1,
        "operations_applied": applied,
        "performance": {
            "operation": label,
            "execution_time_ms": performance["execution_time_ms"],
            "memory_usage_mb": performance["memory_usage_mb"],
            "pulls": counter.pulls
        }
    }


def get_system_health() -> Dict[str, Any]:
    """Metrics summary plus this process's resident memory"""
    summary = get_performance_summary()
    try:
        process_memory_mb = psutil.Process(os.getpid()).memory_info().rss / (1024 * 1024)
    except psutil.Error as e:
        logger.error(f"Failed to read process memory: {e}")
        process_memory_mb = 0.0

    total = summary["total_operations"]
    failed = summary["failed_operations"]
    return {
        "healthy": total == 0 or failed < total,
        "total_runs": total,
        "failed_runs": failed,
        "avg_time_ms": summary["avg_time_ms"],
        "process_memory_mb": process_memory_mb,
        "max_result_size": MAX_RESULT_SIZE
    }
