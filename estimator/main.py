from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging

from .config import settings
from .database import engine, Base
from .routers import catalog, formulas, pricing, proposals

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger("estimator")

# Create tables (handles new tables but won't add columns to existing ones)
Base.metadata.create_all(bind=engine)

app = FastAPI(
    title=settings.APP_NAME,
    description="Formula evaluation and cost aggregation for trade proposals",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# API routes
app.include_router(catalog.router, prefix="/api")
app.include_router(formulas.router, prefix="/api")
app.include_router(pricing.router, prefix="/api")
app.include_router(proposals.router, prefix="/api")


@app.get("/health")
def health():
    return {"status": "ok", "app": "proposal-estimator"}


@app.on_event("startup")
def auto_seed():
    """Auto-seed the reference catalog on first run."""
    from .database import SessionLocal
    db = SessionLocal()
    try:
        added = catalog.seed_catalog(db)
        if added:
            logger.info(f"Seeded {added} catalog rows")
    finally:
        db.close()
