from arena.schemas.common import ApiResponse, GuestContactIn
from arena.schemas.booking import BookingCreate, BookingUpdate, BookingResponse, AvailabilityResponse
from arena.schemas.order import OrderCreate, OrderFromCart, OrderStatusUpdate, OrderResponse
from arena.schemas.payment import CheckoutRequest, CheckoutSessionResponse, PaymentIntentResponse, PaymentResponse
from arena.schemas.gift_card import GiftCardResponse, UserGiftCardResponse, RedeemRequest
from arena.schemas.registration import RegistrationCreate, RegistrationResponse
from arena.schemas.cart import CartItemCreate, CartItemResponse

__all__ = [
    "ApiResponse", "GuestContactIn",
    "BookingCreate", "BookingUpdate", "BookingResponse", "AvailabilityResponse",
    "OrderCreate", "OrderFromCart", "OrderStatusUpdate", "OrderResponse",
    "CheckoutRequest", "CheckoutSessionResponse", "PaymentIntentResponse", "PaymentResponse",
    "GiftCardResponse", "UserGiftCardResponse", "RedeemRequest",
    "RegistrationCreate", "RegistrationResponse",
    "CartItemCreate", "CartItemResponse",
]
