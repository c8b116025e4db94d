from fastapi import APIRouter
from advisorhub.api.v1 import clients, leads, trades, dashboard, messaging

api_router = APIRouter()

api_router.include_router(clients.router, prefix="/clients", tags=["clients"])
api_router.include_router(leads.router, prefix="/leads", tags=["leads"])
api_router.include_router(trades.router, prefix="/trades", tags=["trades"])
api_router.include_router(dashboard.router, prefix="/dashboard", tags=["dashboard"])
api_router.include_router(messaging.router, prefix="/messaging", tags=["messaging"])
