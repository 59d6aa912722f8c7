from fastapi import APIRouter

from app.api.endpoint import auth, activity, users


api_router = APIRouter()

api_router.include_router(
  auth.router,
  prefix='/auth',
  tags=["Auth"]
)

api_router.include_router(
  activity.public_router,
  prefix='/activity',
  tags=["activity"]
)

api_router.include_router(
  activity.router,
  prefix='/activity',
  tags=["activity"]
)

api_router.include_router(
  users.router,
  prefix='/users',
  tags=["users"]
)
