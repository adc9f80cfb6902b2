"""
API Router
Combines all endpoint routers
"""
from fastapi import APIRouter
from app.api.v1.endpoints import calls, webhooks

api_router = APIRouter()

api_router.include_router(calls.router)
api_router.include_router(webhooks.router)
