"""FastAPI application factory."""
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from cyclemetrics.analysis.rider import ConfigurationError
from cyclemetrics.analysis.series import InvalidStreamError
from cyclemetrics.api.routes import metrics


def create_app() -> FastAPI:
    """Build and return the FastAPI app."""

    app = FastAPI(
        title="Cycle Metrics API",
        description="Training metrics for cycling activity streams",
        version="0.1.0",
    )

    @app.exception_handler(InvalidStreamError)
    async def invalid_stream_handler(request: Request, exc: InvalidStreamError):
        return JSONResponse(
            status_code=422,
            content={"detail": str(exc), "activity_id": exc.activity_id},
        )

    @app.exception_handler(ConfigurationError)
    async def configuration_handler(request: Request, exc: ConfigurationError):
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    app.include_router(metrics.router, prefix="/metrics", tags=["metrics"])

    return app


# Module-level app instance for uvicorn
app = create_app()
