"""
Retrofit Estimator API
FastAPI service around the cost estimation & BOQ reconciliation engines.
"""
import os
import logging

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# .env must be loaded before config reads the environment; a missing file is a no-op
load_dotenv()

from retrofit_estimator.config import LOG_FORMAT, LOG_LEVEL
from retrofit_estimator.services.logging_config import setup_logging
from retrofit_estimator.services.middleware import RequestTimingMiddleware
from retrofit_estimator.api.estimate_routes import router as estimate_router

setup_logging(level=LOG_LEVEL, json_output=LOG_FORMAT != "text")
logger = logging.getLogger("retrofit-api")

APP_VERSION = "1.0.0"

app = FastAPI(
    title="Retrofit Estimator API",
    version=APP_VERSION,
    description="Cost estimation, markup chain and BOQ import for retrofit projects",
)

_cors_default = "http://localhost:3000,http://localhost:8000"
cors_origins = [o.strip() for o in os.getenv("CORS_ORIGINS", _cors_default).split(",") if o.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "OPTIONS"],
    allow_headers=["Content-Type", "Accept", "X-Requested-With", "X-Request-ID"],
)
# Request timing + X-Request-ID must be outermost so it wraps all other middleware
app.add_middleware(RequestTimingMiddleware)

app.include_router(estimate_router)


@app.get("/health")
async def health_check():
    return {"status": "active", "version": APP_VERSION}
