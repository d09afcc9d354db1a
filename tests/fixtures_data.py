"""Conjunto de dados reutilizável para cenários de teste backend."""

PRICING_CONFIG = {
    "minimum_order_amount": 50_000,
    "delivery_fee": 10_000,
    "free_delivery_threshold": 200_000,
}

KOPI_TENANT = {
    "id": 1,
    "slug": "kopipendekar",
    "name": "Kopi Pendekar",
    "is_active": True,
    "order_code_prefix": "KP",
    **PRICING_CONFIG,
}

OTHER_TENANT = {
    "id": 2,
    "slug": "bakso-mas-joko",
    "name": "Bakso Mas Joko",
    "is_active": True,
    "order_code_prefix": "BMJ",
    "minimum_order_amount": 0,
    "delivery_fee": 5_000,
    "free_delivery_threshold": 0,
}

CHECKOUT_CUSTOMER = {
    "name": "Budi Santoso",
    "phone": "0812-3456-7890",
    "notes": "Gula sedikit",
}

CART_150K = [
    {"item_id": "kopi-susu", "name": "Kopi Susu Gula Aren", "unit_price": 25_000, "qty": 4},
    {"item_id": "roti-bakar", "name": "Roti Bakar Coklat", "unit_price": 50_000, "qty": 1},
]

CART_250K = [
    {"item_id": "kopi-susu", "name": "Kopi Susu Gula Aren", "unit_price": 25_000, "qty": 6},
    {"item_id": "roti-bakar", "name": "Roti Bakar Coklat", "unit_price": 50_000, "qty": 2},
]

CART_20K = [
    {"item_id": "es-teh", "name": "Es Teh Manis", "unit_price": 10_000, "qty": 2},
]

CASHIER_MEMBERSHIP = {
    "tenant_id": 1,
    "tenant_slug": "kopipendekar",
    "tenant_name": "Kopi Pendekar",
    "role": "cashier",
}

ADMIN_MEMBERSHIP = {
    "tenant_id": 1,
    "tenant_slug": "kopipendekar",
    "tenant_name": "Kopi Pendekar",
    "role": "admin",
}

ACCESS_STATUS_CASHIER = {"is_super_admin": False, "memberships": [CASHIER_MEMBERSHIP]}
ACCESS_STATUS_ADMIN = {"is_super_admin": False, "memberships": [ADMIN_MEMBERSHIP]}
