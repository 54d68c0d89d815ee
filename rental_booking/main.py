# rental_booking/main.py

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from rental_booking.config import ALLOWED_ORIGINS
from rental_booking.logging_config import setup_logging
from rental_booking.middleware import RequestIDMiddleware
from rental_booking.routes.errors import register_exception_handlers
from rental_booking.routes.health import router as health_router
from rental_booking.routes.listings import router as listings_router
from rental_booking.routes.metrics import router as metrics_router
from rental_booking.routes.overrides import router as overrides_router
from rental_booking.routes.reservations import router as reservations_router

# Initialize structured logging
setup_logging()
logger = structlog.get_logger(__name__)

API_PREFIX = "/api/v1"

app = FastAPI(
    title="Rental Booking API",
    description="Availability, pricing and conflict-free reservations for short-term rentals",
    version="1.0.0",
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS if "*" not in ALLOWED_ORIGINS else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestIDMiddleware)

register_exception_handlers(app)

# Register routers
app.include_router(health_router, tags=["Health"])
app.include_router(metrics_router, tags=["Metrics"])
app.include_router(reservations_router, prefix=API_PREFIX, tags=["Reservations"])
app.include_router(listings_router, prefix=API_PREFIX, tags=["Listings"])
app.include_router(overrides_router, prefix=API_PREFIX, tags=["Overrides"])


@app.on_event("startup")
def startup_event() -> None:
    logger.info("fastapi_application_started", api_prefix=API_PREFIX)
