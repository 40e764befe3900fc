from fastapi import APIRouter, Depends, HTTPException, Response

from chatsync.container import ChatCore
from chatsync.models.user import User
from chatsync.schemas.user import ProfileUpdate, UserCreate
from chatsync.utils.dependencies import get_core, get_current_user

router = APIRouter(prefix="/users", tags=["user"])
media_router = APIRouter(prefix="/media", tags=["media"])


def public_profile(core: ChatCore, user: User) -> dict:
    record = user.to_record()
    record["statusText"] = core.presence.status_text(user)
    # friend lists are private to their owner
    record.pop("friends", None)
    return record


@router.post("")
async def register(body: UserCreate, user_id: str = Depends(get_current_user), core: ChatCore = Depends(get_core)):
    user = await core.users.register_user(user_id, body.email, body.display_name, body.description)
    return {"user": user.to_record()}


@router.get("/me")
async def read_me(user_id: str = Depends(get_current_user), core: ChatCore = Depends(get_core)):
    return {"user": (await core.users.get_user(user_id)).to_record()}


@router.patch("/me")
async def update_me(body: ProfileUpdate, user_id: str = Depends(get_current_user), core: ChatCore = Depends(get_core)):
    user = await core.users.update_profile(user_id, body.display_name, body.description)
    return {"user": user.to_record()}


@router.get("/search")
async def search_by_email(email: str, user_id: str = Depends(get_current_user), core: ChatCore = Depends(get_core)):
    user = await core.users.find_by_email(email)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return {"user": {"uid": user.uid, "displayName": user.display_name, "email": user.email}}


@router.get("/{uid}")
async def read_user(uid: str, user_id: str = Depends(get_current_user), core: ChatCore = Depends(get_core)):
    user = await core.users.get_user(uid)
    return {"user": public_profile(core, user)}


@media_router.get("/{media_id}")
async def download_media(media_id: str, core: ChatCore = Depends(get_core)):
    filename, data = await core.media.download(media_id)
    return Response(content=data, media_type="application/octet-stream", headers={"Content-Disposition": f'inline; filename="{filename}"'})
