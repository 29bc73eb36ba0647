from fastapi import APIRouter
from api.conversion import router as conversion_router
from api.files import router as files_router

api_router = APIRouter()

# Mount the sub-routers
api_router.include_router(conversion_router)
api_router.include_router(files_router)
