"""
API v1 Router
汇总 REST 路由 (WebSocket 入口 /stream 直接挂在根路径)
"""

from fastapi import APIRouter

from gateway.api.v1.translate import router as translate_router

api_router = APIRouter()

api_router.include_router(translate_router)
