from fastapi import APIRouter, Depends

from conduit.dependencies import get_current_user_id, get_services, get_token
from conduit.schemas import LoginRequest, NewUserRequest, UpdateUserRequest, UserOut, UserResponse
from conduit.wiring import Services

router = APIRouter(prefix="/api", tags=["users"])


@router.post("/users", status_code=201, response_model=UserResponse)
async def register(data: NewUserRequest, services: Services = Depends(get_services)):
    user = await services.users.register(data.user.username, data.user.email, data.user.password)
    token = services.users.issue_token_for(user)
    return UserResponse(user=UserOut.from_record(user, token))


@router.post("/users/login", response_model=UserResponse)
async def login(data: LoginRequest, services: Services = Depends(get_services)):
    identifier = data.user.email or data.user.username or ""
    user, token = await services.users.login(identifier, data.user.password)
    return UserResponse(user=UserOut.from_record(user, token))


@router.get("/user", response_model=UserResponse)
async def get_current_user(
    user_id: int = Depends(get_current_user_id),
    token: str = Depends(get_token),
    services: Services = Depends(get_services),
):
    user = await services.users.current_user(user_id)
    return UserResponse(user=UserOut.from_record(user, token))


@router.put("/user", response_model=UserResponse)
async def update_current_user(
    data: UpdateUserRequest,
    user_id: int = Depends(get_current_user_id),
    token: str = Depends(get_token),
    services: Services = Depends(get_services),
):
    changes = data.user
    user = await services.users.update(
        user_id,
        username=changes.username,
        email=changes.email,
        password=changes.password,
        bio=changes.bio,
        image=changes.image,
    )
    return UserResponse(user=UserOut.from_record(user, token))
