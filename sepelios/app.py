# module sepelios.app
from fastapi import FastAPI

from sepelios.app_setup.lifespan import lifespan
from sepelios.app_setup.middlewares import (
    register_basic_middlewares,
    register_security_middleware,
    register_force_https_middleware,
)
from sepelios.app_setup.exception_handlers import register_exception_handlers
from sepelios.app_setup.routers import register_routers

def create_app() -> FastAPI:
    """
    Crée et configure l'instance FastAPI.
    Ordre:
      1) register_basic_middlewares: CORS, TrustedHost, ProxyHeaders.
      2) register_security_middleware: en-têtes de sécurité.
      3) register_exception_handlers: DomainError -> {"error", "code"}, HTTPException -> {"detail"}.
      4) register_routers: cotisations, Mercado Pago, contrats, health.
      5) register_force_https_middleware: ajouté en dernier pour s'exécuter en premier.
    """
    app = FastAPI(title="Sepelios API", lifespan=lifespan)
    register_basic_middlewares(app)
    register_security_middleware(app)
    register_exception_handlers(app)
    register_routers(app)
    register_force_https_middleware(app)
    return app

# App globale
app = create_app()
