from arena.models.user import User
from arena.models.vr_session import VRSession
from arena.models.booking import Booking
from arena.models.catalog import Product, Tournament, VenueEvent
from arena.models.order import ShippingAddress, Order, OrderItem
from arena.models.registration import TournamentRegistration, EventRegistration
from arena.models.payment import Payment, ProcessedWebhookEvent
from arena.models.gift_card import GiftCard, UserGiftCard
from arena.models.cart import CartItem
from arena.models.notification import Notification

__all__ = [
    "User", "VRSession", "Booking",
    "Product", "Tournament", "VenueEvent",
    "ShippingAddress", "Order", "OrderItem",
    "TournamentRegistration", "EventRegistration",
    "Payment", "ProcessedWebhookEvent",
    "GiftCard", "UserGiftCard",
    "CartItem", "Notification",
]
