from fastapi import APIRouter, Depends, status

from finanalyst.models.user import UserCreate, UserLogin, UserPublic
from finanalyst.routers.deps import get_auth_service, get_current_user
from finanalyst.utils.auth_service import AuthService

router = APIRouter()


@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(user: UserCreate, auth: AuthService = Depends(get_auth_service)):
    result = auth.register(user.name, user.email, user.password)
    return {"success": True, "data": result.model_dump()}


@router.post("/login")
def login(login_data: UserLogin, auth: AuthService = Depends(get_auth_service)):
    result = auth.login(login_data.email, login_data.password)
    return {"success": True, "data": result.model_dump()}


@router.get("/me")
def get_me(user: UserPublic = Depends(get_current_user)):
    """Get current user profile"""
    return {"success": True, "data": user.model_dump()}


@router.post("/logout")
def logout():
    # tokens are stateless; the client just drops its copy
    return {"success": True, "message": "Logged out successfully"}
