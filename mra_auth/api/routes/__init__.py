"""
API routes aggregation.
"""

from fastapi import APIRouter

from .auth import router as auth_router
from .authorization import router as authorization_router
from .roles import router as roles_router
from .users import router as users_router

router = APIRouter()

router.include_router(auth_router, tags=["session"])
router.include_router(users_router, tags=["account"])
router.include_router(authorization_router, tags=["authorization"])
router.include_router(roles_router, tags=["roles"])
