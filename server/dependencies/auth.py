import hmac

from fastapi import Header, HTTPException, Request


async def verify_api_key(request: Request, x_api_key: str = Header(...)) -> None:
    """Rejects requests whose X-Api-Key header does not match API_SERVER_API_KEY.

    Raises:
        HTTPException: 401 on a wrong key.
    """
    expected_key = request.app.state.helper_config.get_string_val("API_SERVER_API_KEY")
    if not hmac.compare_digest(x_api_key.encode("utf-8"), expected_key.encode("utf-8")):
        raise HTTPException(status_code=401, detail="Invalid or missing API key")
