from __future__ import annotations

from fastapi import Depends, HTTPException, Request, status

from ..core.errors import PARTIAL_PREFIX
from ..services.repository import Repository, SessionRepository
from ..session import Session, load_state


async def require_session(request: Request) -> Session:
    """
    Gate for UI routes: requires the session created by the login flow.
    Raises 401; the exception handler turns that into the /auth redirect for
    pages and a JSON envelope for partials.
    """
    state = load_state(request)
    if state.session is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Login required")
    return state.session


async def require_admin(session: Session = Depends(require_session)) -> Session:
    if not session.user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Accesso negato")
    return session


def get_repository(request: Request) -> Repository:
    return request.app.state.repository


async def get_session_repository(
    request: Request,
    session: Session = Depends(require_session),
    repository: Repository = Depends(get_repository),
) -> SessionRepository:
    repo = repository.for_session(session)
    # A full page load refetches like a browser reload; the partials it triggers reuse its data.
    if request.method == "GET" and not request.url.path.startswith(PARTIAL_PREFIX):
        repo.invalidate()
    return repo
