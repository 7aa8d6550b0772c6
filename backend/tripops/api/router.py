"""
Main API router that includes all route modules.
"""
from fastapi import APIRouter
from tripops.api.routes import trips, wallets, drivers

api_router = APIRouter()

# Include all route modules
api_router.include_router(trips.router)
api_router.include_router(wallets.router)
api_router.include_router(drivers.router)
