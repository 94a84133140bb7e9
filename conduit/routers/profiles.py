from fastapi import APIRouter, Depends

from conduit.dependencies import get_current_user_id, get_optional_user_id, get_services
from conduit.schemas import ProfileOut, ProfileResponse
from conduit.wiring import Services

router = APIRouter(prefix="/api/profiles", tags=["profiles"])


@router.get("/{username}", response_model=ProfileResponse)
async def get_profile(
    username: str,
    viewer_id: int | None = Depends(get_optional_user_id),
    services: Services = Depends(get_services),
):
    profile = await services.users.get_profile(viewer_id, username)
    return ProfileResponse(profile=ProfileOut.from_profile(profile))


@router.post("/{username}/follow", response_model=ProfileResponse)
async def follow(
    username: str,
    user_id: int = Depends(get_current_user_id),
    services: Services = Depends(get_services),
):
    profile = await services.users.follow(user_id, username)
    return ProfileResponse(profile=ProfileOut.from_profile(profile))


@router.delete("/{username}/follow", response_model=ProfileResponse)
async def unfollow(
    username: str,
    user_id: int = Depends(get_current_user_id),
    services: Services = Depends(get_services),
):
    profile = await services.users.unfollow(user_id, username)
    return ProfileResponse(profile=ProfileOut.from_profile(profile))
