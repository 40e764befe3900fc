from fastapi import APIRouter, Depends

from chatsync.container import ChatCore
from chatsync.exceptions import NotFoundError
from chatsync.schemas.user import AddFriendByEmail
from chatsync.utils.dependencies import get_core, get_current_user

router = APIRouter(prefix="/friends", tags=["friend"])


@router.post("/request/{target_user_id}")
async def send_friend_request(target_user_id: str, user_id: str = Depends(get_current_user), core: ChatCore = Depends(get_core)):
    request = await core.friends.send_friend_request(user_id, target_user_id)
    return {"msg": "Request sent", "request": request.to_record()}

@router.post("/accept/{from_user_id}")
async def accept_friend_request(from_user_id: str, user_id: str = Depends(get_current_user), core: ChatCore = Depends(get_core)):
    await core.friends.accept_friend_request(from_user_id, user_id)
    return {"msg": "Friend added"}

@router.delete("/request/{other_user_id}")
async def cancel_friend_request(other_user_id: str, user_id: str = Depends(get_current_user), core: ChatCore = Depends(get_core)):
    # either side may withdraw: the sender cancels, the receiver declines
    try:
        await core.friends.cancel_friend_request(user_id, other_user_id)
    except NotFoundError:
        await core.friends.cancel_friend_request(other_user_id, user_id)
    return {"msg": "Request cancelled"}

@router.post("/add")
async def add_friend_by_email(body: AddFriendByEmail, user_id: str = Depends(get_current_user), core: ChatCore = Depends(get_core)):
    friend = await core.friends.add_friend_by_email(user_id, body.email)
    return {"msg": "Friend added", "friend": friend.to_record()}

@router.get("/list")
async def friend_list(user_id: str = Depends(get_current_user), core: ChatCore = Depends(get_core)):
    friends = await core.friends.list_friends(user_id)
    return {"friends": [f.to_record() for f in friends]}

@router.get("/requests")
async def received_friend_requests(user_id: str = Depends(get_current_user), core: ChatCore = Depends(get_core)):
    requests = await core.friends.get_received_requests(user_id)
    return {"requests": [r.to_record() for r in requests]}

@router.delete("/{friend_id}")
async def unfriend(friend_id: str, user_id: str = Depends(get_current_user), core: ChatCore = Depends(get_core)):
    await core.friends.remove_friend(user_id, friend_id)
    return {"msg": "Unfriended"}
