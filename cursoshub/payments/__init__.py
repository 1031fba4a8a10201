"""
Module 'payments' (feature-first): point d'entrée public.
Réunit logique de commande, adaptateur Pagar.me, verrou/idempotence, outbox et orchestrateur.
"""

from .order import (
    Order,
    LineItem,
    Customer,
    Payment,
    SplitRule,
    to_minor_units,
    build_line_items,
    build_customer,
    build_split_rules,
    to_gateway_payload,
)
from .gateway import PagarmeGateway, GatewayResponse, extract_error_message
from .locks import CheckoutLock, IdempotencyStore
from .outbox import PaymentOutbox, SupabasePaymentEventStore, FulfillmentReport
from .service import CheckoutService, CheckoutResult

__all__ = [
    # order
    "Order",
    "LineItem",
    "Customer",
    "Payment",
    "SplitRule",
    "to_minor_units",
    "build_line_items",
    "build_customer",
    "build_split_rules",
    "to_gateway_payload",
    # gateway
    "PagarmeGateway",
    "GatewayResponse",
    "extract_error_message",
    # locks
    "CheckoutLock",
    "IdempotencyStore",
    # outbox
    "PaymentOutbox",
    "SupabasePaymentEventStore",
    "FulfillmentReport",
    # services
    "CheckoutService",
    "CheckoutResult",
]
