from fastapi import APIRouter

from smart_garden.api.routes import config, health, nodes, notifications

api_router = APIRouter()
api_router.include_router(health.router)
api_router.include_router(nodes.router, tags=["nodes"])
api_router.include_router(config.router, tags=["config"])
api_router.include_router(notifications.router, tags=["notifications"])
