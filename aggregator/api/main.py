"""FastAPI application for the aggregator planner.

Note: Rate limiting is intentionally not implemented at the application level.
It should be handled at the infrastructure layer (reverse proxy / load balancer).
"""

import os

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from aggregator import __version__
from aggregator.api.endpoints import get_config, router

DEBUG = os.environ.get("AGGREGATOR_DEBUG", "false").lower() in ("true", "1", "yes")

# Maximum request body size (1 MB)
MAX_REQUEST_SIZE = 1024 * 1024

app = FastAPI(
    title="V3 Aggregator",
    description="Optimal split routing across UniswapV3 fee tiers",
    version=__version__,
)


@app.middleware("http")
async def limit_request_size(request: Request, call_next):  # type: ignore[no-untyped-def]
    """Reject requests with body larger than MAX_REQUEST_SIZE."""
    content_length = request.headers.get("content-length")
    if content_length and int(content_length) > MAX_REQUEST_SIZE:
        return JSONResponse(status_code=413, content={"detail": "Request too large"})
    return await call_next(request)


app.include_router(router)


@app.get("/health")
async def health() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "ok"}


def main() -> None:
    """Run the API server.

    Host and port come from AGGREGATOR_HOST and AGGREGATOR_PORT;
    AGGREGATOR_DEBUG enables reload and debug logging.
    """
    config = get_config()
    uvicorn.run(
        "aggregator.api.main:app",
        host=config.api_host,
        port=config.api_port,
        reload=DEBUG,
        log_level="debug" if DEBUG else "info",
    )


if __name__ == "__main__":
    main()
