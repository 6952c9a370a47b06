"""
Request dependencies: the wired system, the calling actor, and error mapping
"""

from typing import Optional

from fastapi import Header, HTTPException, Request

from ..errors import (
    ConcurrencyConflict, EngineError, Forbidden, InvalidTransition, NotFound, ValidationError
)
from ..rbac import Actor
from ..system import InvestmentSystem


def get_system(request: Request) -> InvestmentSystem:
    return request.app.state.system


def get_actor(
    x_actor_id: Optional[str] = Header(None),
    x_actor_roles: Optional[str] = Header(None)
) -> Optional[Actor]:
    """
    Actor named by the X-Actor-Id / X-Actor-Roles headers

    Identity is verified upstream; requests without an id carry no actor and
    fail every authorization check.
    """
    if not x_actor_id:
        return None
    roles = tuple(
        role.strip().upper()
        for role in (x_actor_roles or "").split(",")
        if role.strip()
    )
    return Actor(id=x_actor_id, roles=roles)


def status_code_for(error: EngineError) -> int:
    if isinstance(error, ValidationError):
        return 400
    if isinstance(error, Forbidden):
        return 403
    if isinstance(error, NotFound):
        return 404
    if isinstance(error, (InvalidTransition, ConcurrencyConflict)):
        return 409
    return 500


def http_error(error: EngineError) -> HTTPException:
    """Translate an engine error into an HTTPException carrying its code"""
    return HTTPException(status_code=status_code_for(error), detail=error.to_dict())
