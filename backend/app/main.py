import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from app.core.config import get_settings
from app.core.database import Base, engine
from app.core.errors import MarketplaceError, marketplace_error_handler
from app.models import (  # noqa: F401  (register tables on Base.metadata)
    conversation,
    kyc_submission,
    listing,
    listing_image,
    message,
    offer,
    points_transaction,
    user,
)
from app.routers import (
    auth,
    health,
    kyc,
    listing_images,
    listings,
    messages,
    offers,
    points,
    profile,
    ws,
)

# --- Load settings ---
settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# --- Create DB tables ---
Base.metadata.create_all(bind=engine)

# --- Create FastAPI app ---
app = FastAPI(title=settings.app_name)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(MarketplaceError, marketplace_error_handler)

# --- Routers ---
app.include_router(health.router)
app.include_router(auth.router)
app.include_router(profile.router)
app.include_router(listings.router)
app.include_router(listing_images.router)
app.include_router(offers.router)
app.include_router(messages.router)
app.include_router(points.router)
app.include_router(kyc.router)
app.include_router(ws.router)

# --- Static media files ---
settings.media_root.mkdir(parents=True, exist_ok=True)
app.mount(
    settings.media_url,                          # "/media"
    StaticFiles(directory=settings.media_root),  # backend/media
    name="media",
)

logger.info("%s started (env=%s)", settings.app_name, settings.app_env)


# --- Root endpoint ---
@app.get("/")
def root():
    return {"message": f"{settings.app_name} is running"}
