"""API v1 router combining all endpoint routers."""

from fastapi import APIRouter

from dcf_app.api.v1 import reports

api_router = APIRouter()

api_router.include_router(reports.router, prefix="/reports", tags=["reports"])
