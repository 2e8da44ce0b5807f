from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request

from server.dependencies.auth import verify_api_key
from server.models.responses import IndexStatusResponse
from shared.models.errors import EngineUnavailableError, SourceNotAvailableError

router = APIRouter(prefix="/index", tags=["index"])


@router.post("", status_code=202)
async def trigger_index(
    request: Request,
    background_tasks: BackgroundTasks,
    _: None = Depends(verify_api_key),
) -> dict:
    """Start an incremental indexing run in the background.

    Returns:
        dict: Acknowledgement payload.

    Raises:
        HTTPException: 409 if a run is already in progress.
    """
    search_manager = request.app.state.search_manager
    if search_manager.is_indexing():
        raise HTTPException(status_code=409, detail="An indexing run is already in progress.")
    background_tasks.add_task(request.app.state.index_service.run_index)
    return {"status": "accepted"}


@router.delete("")
async def delete_index(
    request: Request,
    component: str | None = None,
    _: None = Depends(verify_api_key),
) -> dict:
    """Delete the documents of one search source, or the whole index.

    Raises:
        HTTPException: 404 if the component has no search source, 503 if the engine failed.
    """
    search_manager = request.app.state.search_manager
    try:
        await search_manager.delete_index(component)
    except SourceNotAvailableError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except EngineUnavailableError as e:
        raise HTTPException(status_code=503, detail=str(e))
    return {"status": "deleted", "component": component}


@router.get("/status")
async def index_status(
    request: Request,
    _: None = Depends(verify_api_key),
) -> IndexStatusResponse:
    """Report the indexing counters of every supported search source."""
    search_manager = request.app.state.search_manager
    return IndexStatusResponse(
        indexing=search_manager.is_indexing(),
        components=search_manager.get_sources_config(),
    )
