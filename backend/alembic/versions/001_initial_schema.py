"""Initial schema: users, catalog, VR sessions, bookings, orders, registrations,
payments, webhook ledger, gift cards, cart and notifications.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def _guest_columns() -> list:
    return [
        sa.Column("is_guest", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("guest_name", sa.String(255), nullable=True),
        sa.Column("guest_email", sa.String(255), nullable=True),
        sa.Column("guest_phone", sa.String(50), nullable=True),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("role", sa.String(20), nullable=False, server_default="user"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
        sa.CheckConstraint("role IN ('user', 'admin')", name="check_user_role"),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    # Catalog (read-only for this service)
    op.create_table(
        "products",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("stock", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
    )
    op.create_index("ix_products_id", "products", ["id"])

    op.create_table(
        "tournaments",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("entry_fee", sa.Numeric(10, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("max_participants", sa.Integer(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_tournaments_id", "tournaments", ["id"])

    op.create_table(
        "events",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("ticket_price", sa.Numeric(10, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("event_date", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_events_id", "events", ["id"])

    # VR sessions: version is the optimistic lock every booking write bumps.
    op.create_table(
        "vr_sessions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("max_players", sa.Integer(), nullable=False),
        sa.Column("price", sa.Numeric(10, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("1")),
        *_timestamps(),
        sa.CheckConstraint("max_players > 0", name="check_max_players_positive"),
    )
    op.create_index("ix_vr_sessions_id", "vr_sessions", ["id"])

    op.create_table(
        "payments",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("entity_type", sa.String(20), nullable=False),
        sa.Column("entity_id", sa.Integer(), nullable=False),
        sa.Column("payment_intent_id", sa.String(255), nullable=True, unique=True),
        sa.Column("checkout_session_id", sa.String(255), nullable=True, unique=True),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("currency", sa.String(8), nullable=False, server_default="usd"),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("connected_account_id", sa.String(255), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "entity_type IN ('gift_card', 'order', 'booking', 'ticket', 'tournament', 'event')",
            name="check_payment_entity_type",
        ),
        sa.CheckConstraint(
            "status IN ('pending', 'succeeded', 'failed', 'expired')",
            name="check_payment_status",
        ),
        sa.CheckConstraint("amount > 0", name="check_payment_amount_positive"),
    )
    op.create_index("ix_payments_id", "payments", ["id"])
    op.create_index("ix_payments_user_id", "payments", ["user_id"])
    # The webhook transition matches on (entity_type, entity_id, user_id, status).
    op.create_index(
        "ix_payments_entity_status", "payments", ["entity_type", "entity_id", "user_id", "status"]
    )

    op.create_table(
        "processed_webhook_events",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("event_id", sa.String(255), nullable=False, unique=True),
        sa.Column("event_type", sa.String(100), nullable=False),
        sa.Column("result", sa.String(20), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_processed_webhook_events_id", "processed_webhook_events", ["id"])

    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("session_id", sa.Integer(), sa.ForeignKey("vr_sessions.id"), nullable=False),
        sa.Column("machine_type", sa.String(100), nullable=False),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("payment_status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("session_status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("payment_method", sa.String(20), nullable=False, server_default="online"),
        sa.Column("session_count", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("player_count", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("total_amount", sa.Numeric(10, 2), nullable=False, server_default=sa.text("0")),
        *_guest_columns(),
        sa.Column("booking_reference", sa.String(64), nullable=True, unique=True),
        sa.Column("payment_id", sa.Integer(), sa.ForeignKey("payments.id"), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "payment_status IN ('pending', 'paid', 'cancelled')", name="check_booking_payment_status"
        ),
        sa.CheckConstraint(
            "session_status IN ('pending', 'started', 'completed')", name="check_booking_session_status"
        ),
        sa.CheckConstraint("end_time > start_time", name="check_booking_time_window"),
        sa.CheckConstraint("player_count > 0", name="check_booking_player_count_positive"),
    )
    op.create_index("ix_bookings_id", "bookings", ["id"])
    op.create_index("ix_bookings_user_id", "bookings", ["user_id"])
    op.create_index("ix_bookings_session_id", "bookings", ["session_id"])
    op.create_index("ix_bookings_guest_email", "bookings", ["guest_email"])
    # Capacity count: WHERE session_id = ? AND payment_status IN ('pending', 'paid')
    op.create_index("ix_bookings_session_payment_status", "bookings", ["session_id", "payment_status"])

    op.create_table(
        "shipping_addresses",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("full_name", sa.String(255), nullable=False),
        sa.Column("address", sa.String(500), nullable=False),
        sa.Column("city", sa.String(100), nullable=False),
        sa.Column("state", sa.String(100), nullable=False),
        sa.Column("zip_code", sa.String(20), nullable=False),
        sa.Column("country", sa.String(100), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_shipping_addresses_id", "shipping_addresses", ["id"])
    op.create_index("ix_shipping_addresses_user_id", "shipping_addresses", ["user_id"])

    op.create_table(
        "orders",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("total_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("shipping_cost", sa.Numeric(10, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("payment_method", sa.String(20), nullable=False, server_default="cod"),
        sa.Column("payment_status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column(
            "shipping_address_id", sa.Integer(), sa.ForeignKey("shipping_addresses.id"), nullable=False
        ),
        *_guest_columns(),
        sa.Column("order_reference", sa.String(64), nullable=True, unique=True),
        *_timestamps(),
        sa.CheckConstraint(
            "status IN ('pending', 'processing', 'shipped', 'delivered')", name="check_order_status"
        ),
        sa.CheckConstraint("payment_method IN ('cod', 'online')", name="check_order_payment_method"),
        sa.CheckConstraint(
            "payment_status IN ('pending', 'paid', 'failed')", name="check_order_payment_status"
        ),
        sa.CheckConstraint("total_amount >= 0", name="check_order_total_non_negative"),
        sa.CheckConstraint("shipping_cost >= 0", name="check_order_shipping_non_negative"),
    )
    op.create_index("ix_orders_id", "orders", ["id"])
    op.create_index("ix_orders_user_id", "orders", ["user_id"])

    op.create_table(
        "order_items",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("order_id", sa.Integer(), sa.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False),
        sa.Column("item_type", sa.String(20), nullable=False, server_default="product"),
        sa.Column("product_id", sa.Integer(), sa.ForeignKey("products.id"), nullable=True),
        sa.Column("tournament_id", sa.Integer(), sa.ForeignKey("tournaments.id"), nullable=True),
        sa.Column("event_id", sa.Integer(), sa.ForeignKey("events.id"), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("item_type IN ('product', 'tournament', 'event')", name="check_order_item_type"),
        sa.CheckConstraint("quantity > 0", name="check_order_item_quantity_positive"),
        sa.CheckConstraint("price >= 0", name="check_order_item_price_non_negative"),
    )
    op.create_index("ix_order_items_id", "order_items", ["id"])
    op.create_index("ix_order_items_order_id", "order_items", ["order_id"])

    for table, target, target_table in (
        ("tournament_registrations", "tournament_id", "tournaments"),
        ("event_registrations", "event_id", "events"),
    ):
        op.create_table(
            table,
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column(target, sa.Integer(), sa.ForeignKey(f"{target_table}.id"), nullable=False),
            sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
            sa.Column("payment_id", sa.Integer(), sa.ForeignKey("payments.id"), nullable=True),
            sa.Column("status", sa.String(20), nullable=False, server_default="registered"),
            sa.Column("payment_status", sa.String(20), nullable=False, server_default="pending"),
            sa.Column("payment_option", sa.String(20), nullable=False, server_default="online"),
            *_guest_columns(),
            sa.Column("registration_reference", sa.String(64), nullable=True, unique=True),
            *_timestamps(),
        )
        op.create_index(f"ix_{table}_id", table, ["id"])
        op.create_index(f"ix_{table}_{target}", table, [target])
        op.create_index(f"ix_{table}_user_id", table, ["user_id"])

    op.create_table(
        "gift_cards",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("code", sa.String(64), nullable=False, unique=True),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("category", sa.String(100), nullable=False, server_default="Gift Cards"),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        *_timestamps(),
        sa.CheckConstraint("status IN ('active', 'inactive', 'redeemed')", name="check_gift_card_status"),
        sa.CheckConstraint("amount > 0", name="check_gift_card_amount_positive"),
    )
    op.create_index("ix_gift_cards_id", "gift_cards", ["id"])

    op.create_table(
        "user_gift_cards",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("gift_card_id", sa.Integer(), sa.ForeignKey("gift_cards.id"), nullable=False),
        sa.Column("code", sa.String(32), nullable=False, unique=True),
        sa.Column("remaining_balance", sa.Numeric(10, 2), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        *_timestamps(),
        sa.UniqueConstraint("user_id", "gift_card_id", name="uq_user_gift_card"),
        # Redemption is a conditional UPDATE; this is the last line of defence.
        sa.CheckConstraint("remaining_balance >= 0", name="check_remaining_balance_non_negative"),
    )
    op.create_index("ix_user_gift_cards_id", "user_gift_cards", ["id"])
    op.create_index("ix_user_gift_cards_user_id", "user_gift_cards", ["user_id"])

    op.create_table(
        "cart_items",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("item_type", sa.String(20), nullable=False, server_default="product"),
        sa.Column("product_id", sa.Integer(), sa.ForeignKey("products.id"), nullable=True),
        sa.Column("tournament_id", sa.Integer(), sa.ForeignKey("tournaments.id"), nullable=True),
        sa.Column("event_id", sa.Integer(), sa.ForeignKey("events.id"), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("payment_option", sa.String(20), nullable=False, server_default="online"),
        *_timestamps(),
        sa.CheckConstraint("item_type IN ('product', 'tournament', 'event')", name="check_cart_item_type"),
        sa.CheckConstraint("quantity > 0", name="check_cart_quantity_positive"),
    )
    op.create_index("ix_cart_items_id", "cart_items", ["id"])
    op.create_index("ix_cart_items_user_id", "cart_items", ["user_id"])

    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("type", sa.String(50), nullable=False),
        sa.Column("subject", sa.String(255), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("delivery_method", sa.String(20), nullable=False, server_default="push"),
        sa.Column("link", sa.String(500), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        *_timestamps(),
    )
    op.create_index("ix_notifications_id", "notifications", ["id"])
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"])


def downgrade() -> None:
    for table in (
        "notifications",
        "cart_items",
        "user_gift_cards",
        "gift_cards",
        "event_registrations",
        "tournament_registrations",
        "order_items",
        "orders",
        "shipping_addresses",
        "bookings",
        "processed_webhook_events",
        "payments",
        "vr_sessions",
        "events",
        "tournaments",
        "products",
        "users",
    ):
        op.drop_table(table)
