from fastapi import APIRouter

from skybook.api.routes import health, flights, bookings, content, notifications, dashboard

api_router = APIRouter()
api_router.include_router(health.router, prefix="/health", tags=["health"])  # GET /
api_router.include_router(flights.router, prefix="/flights", tags=["flights"])  # GET /, GET /{id}
api_router.include_router(bookings.router, prefix="/bookings", tags=["bookings"])  # POST /, GET /my, POST /{id}/cancel
api_router.include_router(content.router, prefix="/content", tags=["content"])  # offers, public + admin
api_router.include_router(notifications.router, prefix="/notifications", tags=["notifications"])
api_router.include_router(dashboard.router, prefix="/dashboard", tags=["dashboard"])  # GET /
