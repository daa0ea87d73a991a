from fastapi import APIRouter

from backend.app.api.v1.endpoints.health import router as health_router
from backend.app.api.v1.endpoints.auth import router as auth_router
from backend.app.api.v1.endpoints.units import router as units_router
from backend.app.api.v1.endpoints.foods import router as foods_router
from backend.app.api.v1.endpoints.providers import router as providers_router
from backend.app.api.v1.endpoints.medical_centers import router as medical_centers_router
from backend.app.api.v1.endpoints.food_plans import router as food_plans_router
from backend.app.api.v1.endpoints.food_entries import router as food_entries_router
from backend.app.api.v1.endpoints.stock import router as stock_router
from backend.app.api.v1.endpoints.users import router as users_router

router = APIRouter()
router.include_router(health_router, tags=["health"])
router.include_router(auth_router, tags=["auth"])
router.include_router(units_router, tags=["units"])
router.include_router(foods_router, tags=["foods"])
router.include_router(providers_router, tags=["providers"])
router.include_router(medical_centers_router, tags=["medical_centers"])
router.include_router(food_plans_router, tags=["food_plans"])
router.include_router(food_entries_router, tags=["food_entries"])
router.include_router(stock_router, tags=["stock"])
router.include_router(users_router, tags=["users"])
