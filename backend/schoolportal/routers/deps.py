"""
Dépendances FastAPI partagées par les routers.
"""

from typing import Optional

from fastapi import Depends, Header, HTTPException, Request

from schoolportal.services.portal_service import (
    AUTHENTICATION,
    AUTHORIZATION,
    NOT_FOUND,
    REMOTE,
    VALIDATION,
    Failure,
    PortalService,
)

STATUS_BY_KIND = {
    VALIDATION: 422,
    AUTHENTICATION: 401,
    AUTHORIZATION: 403,
    NOT_FOUND: 404,
    REMOTE: 503,
}


def get_portal(request: Request) -> PortalService:
    """Service du portail créé au démarrage (lifespan de main.py)."""
    return request.app.state.portal


def raise_for_failure(failure: Optional[Failure]) -> None:
    if failure is not None:
        raise HTTPException(status_code=STATUS_BY_KIND.get(failure.kind, 400), detail=failure.message)


def current_session(
    x_session_id: str = Header(..., description="Identifiant de la session de vue"),
    portal: PortalService = Depends(get_portal),
) -> str:
    """Identifiant de session transmis dans l'en-tête X-Session-Id."""
    try:
        portal.get_view(x_session_id)
    except ValueError as e:
        raise HTTPException(status_code=401, detail=str(e))
    return x_session_id


def require_admin(
    session_id: str = Depends(current_session),
    portal: PortalService = Depends(get_portal),
) -> str:
    raise_for_failure(portal.require_admin(session_id))
    return session_id
