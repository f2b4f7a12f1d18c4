"""Storage API: the server side of the remote storage backend.

Error bodies are `{"message": ...}` (plus `"details"` for unexpected errors).
Invalid week numbers are 400s, missing weeks are 404s.
"""

from typing import Any

from fastapi import APIRouter, Body, Depends, Request, Response
from fastapi.responses import JSONResponse
from loguru import logger

from roster.db.root_store import RelationalRootStore, validate_week_number

router = APIRouter(prefix="/api/storage", tags=["storage"])


def get_root_store(request: Request) -> RelationalRootStore:
    return request.app.state.root_store


def _bad_request(error: Exception) -> JSONResponse:
    return JSONResponse(status_code=400, content={"message": str(error)})


def _not_found() -> JSONResponse:
    return JSONResponse(status_code=404, content={"message": "Week not found"})


def _internal_error(route: str, error: Exception) -> JSONResponse:
    logger.error(f"[storage-api] Error in {route}: {error}", exc_info=True)
    return JSONResponse(status_code=500, content={"message": "Internal server error", "details": str(error)})


@router.get("/root")
def get_root(store: RelationalRootStore = Depends(get_root_store)):
    try:
        return store.get_root_data()
    except Exception as e:
        return _internal_error("GET /root", e)


@router.put("/root")
def put_root(payload: Any = Body(default=None), store: RelationalRootStore = Depends(get_root_store)):
    try:
        return store.set_root_data(payload)
    except TypeError as e:
        return _bad_request(e)
    except Exception as e:
        return _internal_error("PUT /root", e)


@router.get("/weeks")
def list_weeks(store: RelationalRootStore = Depends(get_root_store)):
    try:
        return store.list_weeks()
    except Exception as e:
        return _internal_error("GET /weeks", e)


@router.get("/weeks/{week_number}")
def get_week(week_number: str, store: RelationalRootStore = Depends(get_root_store)):
    try:
        week = store.get_week(week_number)
    except TypeError as e:
        return _bad_request(e)
    except Exception as e:
        return _internal_error("GET /weeks/{n}", e)
    if week is None:
        return _not_found()
    return week


@router.post("/weeks", status_code=201)
def create_week(body: Any = Body(default=None), store: RelationalRootStore = Depends(get_root_store)):
    """Create (or overwrite) a week from `{weekNumber, payload}`; payload defaults to an empty week."""
    body = body if isinstance(body, dict) else {}
    try:
        number = validate_week_number(body.get("weekNumber"))
        return store.save_week(number, body.get("payload"))
    except TypeError as e:
        return _bad_request(e)
    except Exception as e:
        return _internal_error("POST /weeks", e)


@router.put("/weeks/{week_number}")
def put_week(week_number: str, payload: Any = Body(default=None), store: RelationalRootStore = Depends(get_root_store)):
    try:
        return store.save_week(week_number, payload)
    except TypeError as e:
        return _bad_request(e)
    except Exception as e:
        return _internal_error("PUT /weeks/{n}", e)


@router.delete("/weeks/{week_number}", status_code=204)
def delete_week(week_number: str, store: RelationalRootStore = Depends(get_root_store)):
    try:
        deleted = store.delete_week(week_number)
    except TypeError as e:
        return _bad_request(e)
    except Exception as e:
        return _internal_error("DELETE /weeks/{n}", e)
    if not deleted:
        return _not_found()
    return Response(status_code=204)
