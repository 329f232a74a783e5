from fastapi import APIRouter

from devicepush.api.endpoints import push

api_router = APIRouter()
api_router.include_router(push.router, tags=["push"])
