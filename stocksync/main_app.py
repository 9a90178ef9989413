#=================================================================
# stocksync/main_app.py
# FastAPI application entry-point.
#=================================================================

import logging

from fastapi import FastAPI, Depends, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

from stocksync.routes import router as api_router, verify_admin
from stocksync.admin_routes import router as admin_router
from stocksync.logging_filters import install_html_filter
from stocksync.db import init_db, dispose_engine
from stocksync.config import settings

# --- FastAPI instance ---
app = FastAPI(
    title="Storefront Stock Sync",
    description="Preview and apply price/stock updates to WooCommerce and Shopify stores.",
)

# --- Logging setup (console, INFO level) ---
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s | %(message)s"
)
logger = logging.getLogger("uvicorn.error")
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
install_html_filter()

# --- CORS ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ---------------- Include routers ----------------

app.include_router(api_router)           # /api/sync/*, /api/syncs/*
app.include_router(
    admin_router,
    prefix="/admin",
    dependencies=[Depends(verify_admin)],
)                                        # /admin/users/*

# --- Root endpoint ---
@app.get("/")
async def home():
    return {"status": "running", "service": "Storefront Stock Sync"}

# --- Global error handler (keeps full stack trace in logs) ---
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error("Unhandled error", exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"detail": f"Sync failed: {str(exc)}"},
    )

# ---- Lifecycle ----

@app.on_event("startup")
async def _startup():
    await init_db()

@app.on_event("shutdown")
async def _shutdown():
    await dispose_engine()
