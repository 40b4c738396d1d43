"""
Infrastructure layer - external system integrations.
Keeps business logic clean from implementation details.
"""

from .realtime import Broadcaster, get_broadcaster
from .stripe_gateway import StripeGateway, get_payment_gateway

__all__ = ['Broadcaster', 'get_broadcaster', 'StripeGateway', 'get_payment_gateway']
