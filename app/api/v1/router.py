from fastapi import APIRouter

from app.api.v1.health import router as health_router
from app.api.v1.auth import router as auth_router
from app.api.v1.signup import router as signup_router
from app.api.v1.listings import router as listings_router
from app.api.v1.claims import router as claims_router
from app.api.v1.admin import router as admin_router
from app.api.v1.realtime import router as realtime_router


v1_router = APIRouter()

# ------------------------------------------------------------------
# SYSTEM / IDENTITY
# ------------------------------------------------------------------
v1_router.include_router(health_router, tags=["health"])
v1_router.include_router(auth_router, tags=["auth"])
v1_router.include_router(signup_router, tags=["signup"])

# ------------------------------------------------------------------
# MARKETPLACE
# ------------------------------------------------------------------
v1_router.include_router(listings_router, tags=["listings"])
v1_router.include_router(claims_router, tags=["claims"])
v1_router.include_router(realtime_router, tags=["realtime"])

# ------------------------------------------------------------------
# ADMIN
# ------------------------------------------------------------------
v1_router.include_router(admin_router, tags=["admin"])
