from fastapi import APIRouter, Depends, HTTPException, status

from timeledger.api.deps import get_user_store
from timeledger.core.config import settings
from timeledger.core.rbac import authorize
from timeledger.core.security import get_current_user, hash_password, verify_password, create_jwt
from timeledger.db.user_store import UserStore
from timeledger.schemas.auth_schema import UserIn, LoginIn, UserOut, RegisterOut, TokenOut

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=RegisterOut, status_code=status.HTTP_201_CREATED)
async def register(payload: UserIn, users: UserStore = Depends(get_user_store)):
    existing = await users.get_by_username(payload.username)
    if existing:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Username exists")
    user = await users.create_user(payload.username, hash_password(payload.password), payload.role.value)
    return {"id": user["id"]}


@router.post("/login", response_model=TokenOut)
async def login(payload: LoginIn, users: UserStore = Depends(get_user_store)):
    user = await users.get_by_username(payload.username)
    if not user or not verify_password(payload.password, user.get("password_hash", "")):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    token = create_jwt({"sub": user["id"], "username": user["username"], "role": user["role"]})
    return {"token": token}


@router.get("/me", response_model=UserOut)
async def get_me(current_user=Depends(get_current_user), users: UserStore = Depends(get_user_store)):
    authorize(current_user, "auth:me")
    user = await users.get_user(current_user["id"])
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    return user
