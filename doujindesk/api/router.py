"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter
from doujindesk.api.routes import auth, tickets, purchases, validations, finance, circles, staff

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(auth.router)
api_router.include_router(tickets.router)
api_router.include_router(purchases.router)
api_router.include_router(validations.router)
api_router.include_router(finance.router)
api_router.include_router(circles.router)
api_router.include_router(staff.router)
