"""HTTP API for dashboards - Thin wrapper around operations module."""

import logging

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse

from desk_analytics import __version__, operations
from desk_analytics.client import DeskClientError
from desk_analytics.operations import TicketSource

logger = logging.getLogger(__name__)

PERFORMANCE_ERROR = "Failed to compute agent performance"
UPSTREAM_ERROR = "Upstream request failed"


def get_source() -> TicketSource | None:
    """Upstream data source for a request.

    None selects the shared Desk client, built by operations on first use.
    """
    return None


def create_app() -> FastAPI:
    app = FastAPI(title="Desk Analytics", version=__version__)

    @app.exception_handler(DeskClientError)
    async def desk_client_error_handler(request: Request, exc: DeskClientError):
        logger.error("Desk client error on %s: %s", request.url.path, exc)
        return JSONResponse(status_code=500, content={"error": UPSTREAM_ERROR})

    @app.get("/api/health")
    async def health_check():
        return {"status": "ok"}

    @app.get("/api/agent-performance")
    async def agent_performance(
        from_date: str | None = Query(None, alias="fromDate"),
        to_date: str | None = Query(None, alias="toDate"),
        department_id: str | None = Query(None, alias="departmentId"),
        agent_id: str | None = Query(None, alias="agentId"),
        source: TicketSource | None = Depends(get_source),
    ):
        """Per-agent performance with an overall summary."""
        try:
            return await operations.get_agent_performance(
                source, from_date, to_date, department_id, agent_id
            )
        except Exception as e:
            logger.error("Error in /api/agent-performance: %s", e)
            return JSONResponse(status_code=500, content={"error": PERFORMANCE_ERROR})

    @app.get("/api/views/{view}")
    async def view_rows(
        view: str,
        from_date: str | None = Query(None, alias="fromDate"),
        to_date: str | None = Query(None, alias="toDate"),
        department_id: str | None = Query(None, alias="departmentId"),
        agent: list[str] = Query([]),
        status: list[str] = Query([]),
        search: str | None = None,
        page: int = Query(1, ge=1),
        page_size: int | None = Query(None, ge=0, alias="pageSize"),
        source: TicketSource | None = Depends(get_source),
    ):
        """One page of a dashboard table."""
        if view not in operations.VIEW_NAMES:
            raise HTTPException(status_code=404, detail=f"Unknown view '{view}'")
        try:
            filters = operations.build_filters(
                from_date, to_date, department_id, agent, status, search
            )
        except ValueError as e:
            raise HTTPException(status_code=422, detail=str(e))
        try:
            return await operations.get_view_page(view, filters, page, page_size, source)
        except Exception as e:
            logger.error("Error in /api/views/%s: %s", view, e)
            return JSONResponse(status_code=500, content={"error": f"Failed to build {view} view"})

    return app


def main() -> None:
    """Serve the API with uvicorn."""
    import uvicorn

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(create_app(), host="127.0.0.1", port=8000)


if __name__ == "__main__":
    main()
