"""API Routes Module."""

from fastapi import APIRouter

from propinspect.api import inspections, templates

router = APIRouter()

router.include_router(inspections.router, prefix="/inspections", tags=["Inspections"])
router.include_router(templates.router, prefix="/templates", tags=["Templates"])
