"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter
from ticketpro.api.routes import admin, agents, auth, bookings, notifications, reports, tickets

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(auth.router)
api_router.include_router(tickets.router)
api_router.include_router(bookings.router)
api_router.include_router(agents.router)
api_router.include_router(reports.router)
api_router.include_router(notifications.router)
api_router.include_router(admin.router)
