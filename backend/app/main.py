"""Checkout analytics FastAPI application.

Serves friction, abandonment-risk and revenue-forecast analytics to the
dashboard.

Usage:
    uvicorn backend.app.main:app --host 0.0.0.0 --port 8001 --reload
"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from backend.app.config import settings
from backend.app.routers import abandonment, forecast, friction

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

app = FastAPI(
    title="Checkout Analytics API",
    description="Checkout friction, abandonment risk & revenue forecasting",
    version="1.0.0",
)

# CORS: allow the dashboard dev server to call the API
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Mount routers
app.include_router(friction.router, prefix=settings.api_prefix)
app.include_router(abandonment.router, prefix=settings.api_prefix)
app.include_router(forecast.router, prefix=settings.api_prefix)


@app.get("/")
def root():
    return {"status": "ok", "app": "Checkout Analytics API", "docs": "/docs"}


@app.get("/health")
def health():
    return {"status": "healthy"}
