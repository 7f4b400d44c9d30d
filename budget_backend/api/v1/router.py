from fastapi import APIRouter

from budget_backend.api.v1.endpoints import recurring

api_router = APIRouter()
api_router.include_router(recurring.router, prefix="/recurring", tags=["recurring"])
