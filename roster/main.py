from fastapi import FastAPI, Request
from loguru import logger

from roster.api.storage import router as storage_router
from roster.db.root_store import RelationalRootStore


def create_app(store: RelationalRootStore | None = None) -> FastAPI:
    """Build the storage server application.

    Args:
        store: Root store to serve; defaults to one on settings.database_url.
               Tests pass an in-memory store.
    """
    app = FastAPI(title="Roster Keeper Storage")
    app.state.root_store = store or RelationalRootStore()
    app.include_router(storage_router)

    @app.get("/health")
    def health():
        return {"status": "ok"}

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log all HTTP requests."""
        logger.debug(f"Request: {request.method} {request.url.path}")
        response = await call_next(request)
        logger.debug(f"Response: {response.status_code} for {request.method} {request.url.path}")
        return response

    logger.info("FastAPI application initialized")
    return app
