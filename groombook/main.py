from pathlib import Path

import uvicorn
from fastapi import FastAPI
from fastapi.responses import JSONResponse

from .api import register_exception_handlers, router
from .config import settings
from .core.logging_config import setup_logging
from .core.middleware import RequestLoggingMiddleware, SecurityHeadersMiddleware
from .db import create_schema, ping_database


def _read_app_version() -> str:
    version_file = Path(__file__).resolve().parents[1] / "VERSION"
    try:
        value = version_file.read_text(encoding="utf-8").strip()
        return value or "0.1.0"
    except OSError:
        return "0.1.0"


setup_logging()
if settings.DATABASE_URL.startswith("sqlite") or bool(settings.DB_AUTO_CREATE_ALL):
    create_schema()

app = FastAPI(
    title=settings.APP_NAME,
    description="Clients, dogs, appointments and expenses for a dog grooming business",
    version=_read_app_version(),
)

# added last runs first, so request logging wraps the security headers
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestLoggingMiddleware)
register_exception_handlers(app)


@app.get("/ping")
def ping():
    return {"ok": True}


@app.get("/health")
def health():
    return {"status": "ok"}


@app.get("/health/ready")
def ready():
    checks = {"db": "ok" if ping_database() else "error"}
    if checks["db"] == "ok":
        return {"status": "ready", "checks": checks}
    return JSONResponse(status_code=503, content={"status": "not_ready", "checks": checks})


app.include_router(router)


def run() -> None:
    """Serve the API with uvicorn; installed as the ``groombook`` command."""
    uvicorn.run(
        "groombook.main:app",
        host=settings.HOST,
        port=int(settings.PORT),
        reload=bool(settings.RELOAD),
    )


if __name__ == "__main__":
    run()
