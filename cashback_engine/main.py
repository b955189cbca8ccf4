import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError

from cashback_engine.config import get_settings
from cashback_engine.db import Base, SessionLocal, engine, wait_for_database
from cashback_engine.errors import CashbackError, ServiceUnavailableError

from cashback_engine.models.admin import Admin
from cashback_engine.models.credit import Credit
from cashback_engine.models.customer import Customer
from cashback_engine.models.ledger_entry import LedgerEntry
from cashback_engine.models.store_location import StoreLocation

from cashback_engine.routes.admin import router as admin_router
from cashback_engine.routes.credits import router as credits_router
from cashback_engine.routes.customers import router as customers_router
from cashback_engine.routes.stores import router as stores_router
from cashback_engine.routes.transactions import router as transactions_router
from cashback_engine.routes.wallet import router as wallet_router
from cashback_engine.services.geofence import seed_store_locations


logger = logging.getLogger(__name__)

settings = get_settings()
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)

app = FastAPI(title="Cashback Engine")

# ─── CORS ─────────────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(CashbackError)
def handle_cashback_error(request: Request, exc: CashbackError):
    if exc.status_code >= 500:
        logger.error("request failed", extra={"path": request.url.path, "error": exc.message})
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


@app.exception_handler(OperationalError)
def handle_database_unavailable(request: Request, exc: OperationalError):
    logger.error("database operation failed", extra={"path": request.url.path, "error": str(exc.orig)})
    err = ServiceUnavailableError()
    return JSONResponse(status_code=err.status_code, content=err.to_payload())


@app.on_event("startup")
def startup():
    wait_for_database(
        retries=settings.db_connect_retries,
        delay_seconds=settings.db_connect_retry_delay_seconds,
    )
    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        seeded = seed_store_locations(db)
        if seeded:
            logger.info("seeded store locations", extra={"count": seeded})
    finally:
        db.close()


app.include_router(customers_router)
app.include_router(wallet_router)
app.include_router(transactions_router)
app.include_router(admin_router)
app.include_router(credits_router)
app.include_router(stores_router)


@app.get("/")
def read_root():
    return {"message": "Cashback Engine is running"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="127.0.0.1", port=8001, reload=True)
