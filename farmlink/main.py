# farmlink/main.py
import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from farmlink.core.config import settings
from farmlink.core.errors import MarketplaceError
from farmlink.routers import auth, geocode, notifications, orders, products, reviews, transporter, uploads

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    Path(settings.upload_dir).mkdir(parents=True, exist_ok=True)

    if settings.use_mongo:
        from farmlink.core.db import get_client, get_db
        from farmlink.core.indexes import ensure_indexes

        await ensure_indexes(get_db())
        logger.info("MongoDB indexes ensured on %s", settings.mongo_db)
        yield
        get_client().close()
    else:
        logger.info("Using in-memory repository")
        yield


app = FastAPI(lifespan=lifespan, title=settings.app_name)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(MarketplaceError)
async def marketplace_error_handler(request: Request, exc: MarketplaceError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.info("%s %s rejected (%s): %s", request.method, request.url.path, exc.code, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# ---------------- Include routers ----------------
app.include_router(auth.router)            # /api/auth
app.include_router(products.router)        # /api/products
app.include_router(orders.router)          # /api/orders
app.include_router(transporter.router)     # /api/transporter
app.include_router(reviews.router)         # /api/reviews
app.include_router(notifications.router)   # /api/notifications
app.include_router(geocode.router)         # /api/geocode
app.include_router(uploads.router)         # /uploads


# Health
@app.get("/health")
def health():
    return {"ok": True}
