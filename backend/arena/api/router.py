"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter
from arena.api.routes import bookings, cart, gift_cards, notifications, orders, payments, registrations, webhooks

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(bookings.router)
api_router.include_router(orders.router)
api_router.include_router(cart.router)
api_router.include_router(payments.router)
api_router.include_router(webhooks.router)
api_router.include_router(gift_cards.router)
api_router.include_router(registrations.router)
api_router.include_router(notifications.router)
