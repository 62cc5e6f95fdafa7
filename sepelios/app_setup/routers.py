"""
Registre central des routers (API v1 et health).
- Cotisations: /api/v1/quotations
- Mercado Pago: checkout, webhook (/api/v1/mercadopago), OAuth et credentials
- Contrats: /api/v1/contracts
- Health: /health
"""
from fastapi import FastAPI
from sepelios.quotations import views as quotations_views
from sepelios.payments import views as payments_views
from sepelios.mp_oauth import views as mp_oauth_views
from sepelios.orders import views as orders_views
from sepelios.health.router import router as health_router

def register_routers(app: FastAPI) -> None:
    # API v1
    app.include_router(quotations_views.router)
    app.include_router(payments_views.router)
    app.include_router(mp_oauth_views.router)
    app.include_router(orders_views.router)
    # Health & monitoring
    app.include_router(health_router)
