import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from gameshop.config import settings
from gameshop.db import engine, ping_db
from gameshop.models import Base
from gameshop.metrics import metrics_asgi_app
from gameshop.routers import admin, auth, cart, store, wallet

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(settings.log_level.upper())


@asynccontextmanager
async def lifespan(app: FastAPI):
    # runs once at startup
    Base.metadata.create_all(bind=engine)
    logger.info("schema ready")
    yield


configure_logging()

app = FastAPI(title="GameShop Store", lifespan=lifespan)

app.mount("/metrics", metrics_asgi_app)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    # Transactions were already rolled back by their UnitOfWork
    logger.exception("unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Internal Server Error"})


@app.get("/")
def root():
    return {"service": "gameshop", "docs": "/docs"}

@app.get("/healthz")
def healthz():
    try:
        ping_db()
        return {"ok": True, "db": "up"}
    except Exception:
        logger.warning("database ping failed", exc_info=True)
        return {"ok": False, "db": "down"}


app.include_router(auth.router)
app.include_router(store.router)
app.include_router(cart.router)
app.include_router(wallet.router)
app.include_router(admin.router)
