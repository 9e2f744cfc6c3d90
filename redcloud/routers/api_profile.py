from __future__ import annotations

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

from ..crud import users as crud
from ..db.session import get_db
from ..deps.auth import AuthContext, require_auth
from ..schemas.auth import ProfileUpdate, UserOut
from ..schemas.common import ActionResponse
from ..services import avatars
from ..services.realtime import REALTIME_KEYS, trigger_realtime_update

router = APIRouter(tags=["profile"])


@router.get("/api/v1/profile", response_model=UserOut)
def api_get_profile(auth: AuthContext = Depends(require_auth)):
    return UserOut.model_validate(auth.user)


@router.patch("/api/v1/profile", response_model=ActionResponse[UserOut])
def api_update_profile(payload: ProfileUpdate, auth: AuthContext = Depends(require_auth), db: Session = Depends(get_db)):
    try:
        user = crud.update_profile(db, auth.user, payload.model_dump(exclude_unset=True))
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    trigger_realtime_update(REALTIME_KEYS.PROFILE)
    return ActionResponse[UserOut](message="Profile updated", data=UserOut.model_validate(user))


@router.post("/api/v1/profile/avatar", response_model=ActionResponse[UserOut])
def api_upload_avatar(
    file: UploadFile = File(...),
    auth: AuthContext = Depends(require_auth),
    db: Session = Depends(get_db),
):
    try:
        key = avatars.store_avatar(auth.user.id, file.content_type, file.file)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    finally:
        file.file.close()
    user = crud.set_avatar(db, auth.user, key)
    trigger_realtime_update(REALTIME_KEYS.PROFILE)
    return ActionResponse[UserOut](message="Avatar updated", data=UserOut.model_validate(user))


@router.get("/avatars/{key:path}", include_in_schema=False)
def get_avatar(key: str):
    try:
        path = avatars.avatar_path(key)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return FileResponse(path, headers={"Cache-Control": "public, max-age=86400"})
