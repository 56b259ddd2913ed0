from fastapi import Header, HTTPException, Request


async def verify_api_key(request: Request, x_api_key: str | None = Header(default=None)) -> None:
    """Verify the X-API-Key header against the configured API key.

    Args:
        request (Request): The FastAPI request object (provides app.state).
        x_api_key (str | None): The value of the X-API-Key header.

    Raises:
        HTTPException: 401 if the key is missing or does not match.
    """
    helper_config = request.app.state.helper_config
    expected_key = helper_config.get_string_val("APP_API_KEY")
    if not x_api_key or x_api_key != expected_key:
        raise HTTPException(status_code=401, detail="Invalid or missing API key")


async def get_owner_id(x_user_id: str | None = Header(default=None)) -> int:
    """Resolve the acting user from the X-User-Id header.

    Raises:
        HTTPException: 401 if the header is missing, not an integer or not positive.
    """
    try:
        owner_id = int(x_user_id) if x_user_id is not None else 0
    except ValueError:
        owner_id = 0
    if owner_id <= 0:
        raise HTTPException(status_code=401, detail="Missing or invalid user id")
    return owner_id
