from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from orderflow.deps import get_actor
from orderflow.schemas.orders import SessionEventPayload
from orderflow.services.actor import Actor, Identity, SessionEvent, actor_registry

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/session/events")
def session_event(payload: SessionEventPayload, actor: Actor = Depends(get_actor)):
    """Identity-provider session lifecycle hook (sign-in, sign-out, token refresh)."""
    if not actor.is_authenticated:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Sesi tidak ditemukan. Silakan login terlebih dahulu.",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        event = SessionEvent(payload.event.strip().upper())
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=f"Event sesi tidak dikenal: {payload.event}") from exc

    identity = Identity(user_id=actor.user_id, email=actor.email)
    refreshed = actor_registry.handle_session_event(event, identity)
    return {
        "event": event.value,
        "user_id": identity.user_id,
        "cached": refreshed is not None,
        "access_loaded": bool(refreshed and refreshed.access_loaded),
    }
