"""
api/routes/users.py -- User and notification preference management.

Routes:
  GET /api/users/{uuid}  -- user + preference (admin, or the user themself)
  PUT /api/users/{uuid}  -- create or replace user + preference (admin only)

PUT is a single transaction in the store: if either row fails to write,
neither changes and the route answers 500 with the store's message.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request

from api.models import UserResponse, UserUpsert
from auth.dependencies import get_current_user, require_admin
from auth.models import TokenPayload
from auth.store import CredentialStore

router = APIRouter()


@router.get("/users/{uuid}", response_model=UserResponse)
def get_user(uuid: str, request: Request, current_user: TokenPayload = Depends(get_current_user)) -> UserResponse:
    if not current_user.is_admin and current_user.user_id != uuid:
        raise HTTPException(
            status_code=403,
            detail={"code": "forbidden", "message": "You can only view your own account."},
        )
    store: CredentialStore = request.app.state.store
    user = store.get_user(uuid)
    if user is None:
        raise HTTPException(status_code=404, detail={"code": "not_found", "message": f"User {uuid} not found."})
    return UserResponse.from_domain(user, store.get_preference(uuid))


@router.put("/users/{uuid}", response_model=UserResponse)
def upsert_user(
    uuid: str,
    body: UserUpsert,
    request: Request,
    _admin: TokenPayload = Depends(require_admin),
) -> UserResponse:
    store: CredentialStore = request.app.state.store
    user, pref = body.to_domain(uuid)
    outcome = store.upsert(user, pref)
    if not outcome:
        raise HTTPException(status_code=500, detail={"code": "persistence_error", "message": outcome.message})
    return UserResponse.from_domain(user, pref)
