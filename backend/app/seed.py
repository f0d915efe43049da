# Overview: Demo catalog and accounts for local development and tests.

from __future__ import annotations

from .models import Product, User, UserRole
from .extensions import db
from .services import catalog_service, user_service


DEMO_PASSWORD = "Password123!"

DEMO_PRODUCTS = [
    {
        "product_id": "p1",
        "sku": "AMX-500",
        "name": "Amoxicillin 500mg",
        "category": "Antibiotics",
        "description": "Broad-spectrum penicillin antibiotic used to treat bacterial infections.",
        "pack_size": "20 Capsules",
        "price": "3500.00",
        "wholesale_price": "2800.00",
        "stock": 500,
        "requires_prescription": True,
        "min_order_quantity": 10,
    },
    {
        "product_id": "p2",
        "sku": "PCM-500",
        "name": "Paracetamol 500mg",
        "category": "Pain Relief",
        "description": "Effective analgesic and antipyretic for mild to moderate pain.",
        "pack_size": "100 Tablets",
        "price": "500.00",
        "wholesale_price": "350.00",
        "stock": 2000,
        "requires_prescription": False,
        "min_order_quantity": 20,
    },
    {
        "product_id": "p3",
        "sku": "CET-010",
        "name": "Cetirizine 10mg",
        "category": "Allergy",
        "description": "Antihistamine used to relieve allergy symptoms such as watery eyes and runny nose.",
        "pack_size": "30 Tablets",
        "price": "1200.00",
        "wholesale_price": "900.00",
        "stock": 850,
        "requires_prescription": False,
        "min_order_quantity": 10,
    },
    {
        "product_id": "p4",
        "sku": "MET-500",
        "name": "Metformin 500mg",
        "category": "Diabetes",
        "description": "First-line medication for the treatment of type 2 diabetes.",
        "pack_size": "60 Tablets",
        "price": "2500.00",
        "wholesale_price": "1800.00",
        "stock": 300,
        "requires_prescription": True,
        "min_order_quantity": 10,
    },
    {
        "product_id": "p5",
        "sku": "VIT-D3",
        "name": "Vitamin D3 1000IU",
        "category": "Vitamins",
        "description": "Supports healthy bones, teeth, and muscle function.",
        "pack_size": "90 Softgels",
        "price": "4500.00",
        "wholesale_price": "3200.00",
        "stock": 120,
        "requires_prescription": False,
        "min_order_quantity": 5,
    },
]

DEMO_USERS = [
    {"user_id": "u1", "name": "John Doe", "email": "john@public.com", "role": UserRole.PUBLIC},
    {"user_id": "u2", "name": "MediCorp Pharmacies", "email": "purchasing@medicorp.com",
     "role": UserRole.WHOLESALE, "loyalty_points": 4500, "is_active": True},
    {"user_id": "u3", "name": "Admin User", "email": "admin@kingzypharma.com", "role": UserRole.ADMIN},
    {"user_id": "u4", "name": "Logistics Team", "email": "delivery@kingzypharma.com", "role": UserRole.LOGISTICS},
]


def seed_catalog() -> int:
    """Insert demo products that are missing. Idempotent; returns count created."""
    created = 0
    for row in DEMO_PRODUCTS:
        if db.session.get(Product, row["product_id"]) is None:
            catalog_service.create_product(**row)
            created += 1
    return created


def seed_users(password: str = DEMO_PASSWORD) -> int:
    """Insert demo accounts that are missing. Idempotent; returns count created."""
    created = 0
    for row in DEMO_USERS:
        if db.session.get(User, row["user_id"]) is None:
            user_service.create_user(password=password, **row)
            created += 1
    return created
