"""
Lazy Enumerable Service

A FastAPI front end over the enumerable engine. Pipelines are described
declaratively (source, lazy stages, terminal) and evaluated in a single pass.
Features:
- Pipeline evaluation with any terminal operation
- Pagination over a pipeline's output
- Range materialization
- Performance metrics and health reporting
"""

from datetime import datetime
from typing import Optional

from fastapi import FastAPI, HTTPException, Request, Query
from fastapi.responses import JSONResponse

from enumerable import Enumerable
from utils import (
    MAX_RESULT_SIZE,
    PipelineError,
    evaluate_pipeline,
    paginate_pipeline,
    get_performance_summary,
    clear_performance_metrics,
    get_system_health,
    logger
)
from models import (
    PipelineRequest, PipelineResponse, PageResponse, StatusResponse,
    HealthResponse, ErrorResponse
)

app = FastAPI(
    title="Lazy Enumerable Service",
    description="Single-pass lazy sequence pipelines: filter, map, take, skip and friends",
    version="1.0.0"
)


@app.exception_handler(PipelineError)
async def pipeline_error_handler(request: Request, exc: PipelineError):
    logger.warning(f"Rejected pipeline on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=400,
        content=ErrorResponse(
            error=str(exc),
            error_type="PipelineError",
            timestamp=datetime.now()
        ).model_dump(mode="json")
    )


@app.get("/", response_model=StatusResponse)
async def root():
    """Basic service banner."""
    return StatusResponse(
        ok=True,
        message="Lazy Enumerable Service operational - Features: fused lazy stages, short-circuit terminals, pagination",
        timestamp=datetime.now()
    )


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """Return metrics + process memory summary."""
    health_data = get_system_health()
    return HealthResponse(**health_data, timestamp=datetime.now())


@app.post("/pipeline/evaluate", response_model=PipelineResponse)
async def evaluate(request: PipelineRequest):
    """Evaluate a pipeline and return its terminal result."""
    try:
        outcome = evaluate_pipeline(request)
    except PipelineError:
        raise
    except Exception as e:
        logger.error(f"Pipeline evaluation crashed: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to evaluate pipeline: {str(e)}")

    return PipelineResponse(ok=True, timestamp=datetime.now(), **outcome)


@app.post("/pipeline/page", response_model=PageResponse)
async def page_pipeline(
    request: PipelineRequest,
    page: int = Query(1, description="1-indexed page number"),
    page_size: int = Query(10, description="Elements per page")
):
    """Return one page of a pipeline's output (its terminal is ignored)."""
    try:
        return PageResponse(**paginate_pipeline(request, page, page_size))
    except PipelineError:
        raise
    except Exception as e:
        logger.error(f"Pagination crashed: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to paginate pipeline: {str(e)}")


@app.get("/range")
async def get_range(
    start: int = Query(..., description="First value, or the count when count is omitted"),
    count: Optional[int] = Query(None, description="Number of values to produce")
):
    """Materialize a range, capped at the configured result size."""
    sequence = Enumerable.range(start, count)
    items = sequence.take(MAX_RESULT_SIZE + 1).to_list()
    return {
        "ok": True,
        "items": items[:MAX_RESULT_SIZE],
        "truncated": len(items) > MAX_RESULT_SIZE,
        "timestamp": datetime.now().isoformat()
    }


@app.get("/metrics")
async def metrics():
    """Aggregated performance metrics of all pipeline runs."""
    return {
        "ok": True,
        "metrics": get_performance_summary(),
        "timestamp": datetime.now().isoformat()
    }


@app.delete("/metrics", response_model=StatusResponse)
async def reset_metrics():
    """Clear collected performance metrics."""
    clear_performance_metrics()
    return StatusResponse(ok=True, message="Performance metrics cleared", timestamp=datetime.now())


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
