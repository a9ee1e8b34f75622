from fastapi import APIRouter

from app.api.v1.endpoints import customers, assistants, health

router = APIRouter(prefix="/api/v1")

router.include_router(customers.router)
router.include_router(assistants.router)
router.include_router(health.router)
