from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..crud import guestbook as crud
from ..db.session import get_db
from ..deps.auth import AuthContext, require_auth
from ..schemas.common import ActionResponse
from ..schemas.guestbook import GuestbookMessageCreate, GuestbookMessageOut
from ..services.realtime import REALTIME_KEYS, trigger_realtime_update

router = APIRouter(prefix="/api/v1/guestbook", tags=["guestbook"])


@router.get("", response_model=list[GuestbookMessageOut])
def api_list_messages(limit: int = 100, offset: int = 0, db: Session = Depends(get_db)):
    limit = max(1, min(limit, 200))
    return [GuestbookMessageOut.model_validate(m) for m in crud.list_messages(db, limit=limit, offset=max(offset, 0))]


@router.post("", response_model=ActionResponse[GuestbookMessageOut], status_code=201)
def api_create_message(
    payload: GuestbookMessageCreate, auth: AuthContext = Depends(require_auth), db: Session = Depends(get_db)
):
    try:
        message = crud.create_message(db, auth.user, payload.model_dump())
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    trigger_realtime_update(REALTIME_KEYS.GUESTBOOK)
    return ActionResponse[GuestbookMessageOut](
        message="Message posted", data=GuestbookMessageOut.model_validate(message)
    )


@router.delete("/{message_id}", response_model=ActionResponse[None])
def api_delete_message(message_id: str, auth: AuthContext = Depends(require_auth), db: Session = Depends(get_db)):
    message = crud.get_message(db, message_id)
    if not message:
        raise HTTPException(404, "Message not found")
    try:
        crud.delete_message(db, message, auth.user)
    except PermissionError as exc:
        raise HTTPException(status_code=403, detail=str(exc)) from exc
    trigger_realtime_update(REALTIME_KEYS.GUESTBOOK)
    return ActionResponse[None](message="Message deleted")
