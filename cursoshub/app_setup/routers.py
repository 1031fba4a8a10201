"""
Registre central des routers (API v1, admin, health).
- API v1: cart, payments (checkout), enrollments
- Admin: inscriptions manuelles, réconciliation des paiements
- Health: health_router
"""
from fastapi import FastAPI
from cursoshub.cart import views as cart_views
from cursoshub.payments import views as payments_views
from cursoshub.enrollments import views as enrollments_views
from cursoshub.health.router import router as health_router


def register_routers(app: FastAPI) -> None:
    # API v1
    app.include_router(cart_views.router)
    app.include_router(payments_views.router)
    app.include_router(enrollments_views.router)
    # Admin
    app.include_router(enrollments_views.admin_router)
    app.include_router(payments_views.admin_router)
    # Health & monitoring
    app.include_router(health_router)
