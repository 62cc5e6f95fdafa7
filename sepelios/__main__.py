"""
Lancement local / conteneur: `python -m sepelios`.

Variables d'environnement:
- HOST / PORT: adresse d'écoute (0.0.0.0:8000 par défaut)
- UVICORN_RELOAD: reload auto en dev ("1"/"true"/"yes")
- LOG_LEVEL: niveau des logs uvicorn et des loggers applicatifs "sepelios.*"
"""
import copy
import os

import uvicorn
from uvicorn.config import LOGGING_CONFIG


def _log_config(level: str) -> dict:
    # Les loggers sepelios.* (webhook, checkout, OAuth) sortent sur le handler uvicorn par défaut
    cfg = copy.deepcopy(LOGGING_CONFIG)
    cfg["loggers"]["sepelios"] = {"handlers": ["default"], "level": level.upper(), "propagate": False}
    return cfg


def main() -> None:
    log_level = os.environ.get("LOG_LEVEL", "info")
    uvicorn.run(
        "sepelios.asgi:app",
        host=os.environ.get("HOST", "0.0.0.0"),
        port=int(os.environ.get("PORT", 8000)),
        reload=os.environ.get("UVICORN_RELOAD", "").lower() in ("1", "true", "yes"),
        log_level=log_level,
        log_config=_log_config(log_level),
        proxy_headers=True,
    )


if __name__ == "__main__":
    main()
