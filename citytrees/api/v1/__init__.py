"""
API v1 routes.
"""

from fastapi import APIRouter

from citytrees.api.v1 import auth, files, trees, users

router = APIRouter()

router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
router.include_router(users.router, prefix="/users", tags=["Users"])
router.include_router(trees.router, prefix="/trees", tags=["Trees"])
router.include_router(files.router, prefix="/files", tags=["Files"])
