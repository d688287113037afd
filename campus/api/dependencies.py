"""FastAPI dependencies: the service container and the acting user."""

from fastapi import HTTPException, Request, status

from campus.api.container import Container
from campus.common.config import get_config


def get_container(request: Request) -> Container:
    return request.app.state.container


def get_actor_id(request: Request) -> str:
    """
    The acting user's id, from the identity header set by the gateway.

    Raises:
        HTTPException: 401 if the header is missing
    """
    header = get_config().api.user_header
    user_id = request.headers.get(header)
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Missing {header} header"
        )
    return user_id
