import httpx
from fastapi import APIRouter, Depends, HTTPException, Request

from server.dependencies.auth import verify_api_key
from server.models.requests import QueryRequest
from server.models.responses import QueryResponse
from shared.clients.ClientInterface import ClientRequestError
from shared.models.errors import SchemaViolationError

router = APIRouter(prefix="/query", tags=["query"])


@router.post("")
async def query_documents(
    request: Request,
    body: QueryRequest,
    _: None = Depends(verify_api_key),
) -> QueryResponse:
    """Execute a search query for a host user.

    Args:
        request (Request): FastAPI request (provides app.state.query_service).
        body (QueryRequest): JSON body with the query, filters and the acting user.
        _ (None): Auth dependency result (unused).

    Returns:
        QueryResponse: One page of granted results.
    """
    query_service = request.app.state.query_service
    try:
        return await query_service.search(body)
    except SchemaViolationError as e:
        request.app.state.logging.error("Search backend schema defect: %s", e)
        raise HTTPException(status_code=500, detail=str(e))
    except (ClientRequestError, httpx.HTTPError) as e:
        request.app.state.logging.error("Could not resolve the accessible contexts of user %d: %s", body.userid, e)
        raise HTTPException(status_code=502, detail="The host platform is not reachable.")
