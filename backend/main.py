"""
ResultSheet — School Grading & Report Analytics
FastAPI backend entry point.
"""

import logging
import os

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from core.settings import get_default_settings
from routes.grading import router as grading_router

# Load environment
load_dotenv()

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

SCHOOL_NAME = os.getenv("SCHOOL_NAME", "My School")
# Comma-separated allowed origins, e.g. http://localhost:5173,https://app.example.com
raw_origins = os.getenv("CORS_ORIGINS", "http://localhost:5173,http://localhost:3000")
ALLOWED_ORIGINS = [o.strip() for o in raw_origins.split(",") if o.strip()]

# Grading defaults (SCIENCE_BASE_SCORE, CORE_SUBJECTS); a bad value stops startup.
DEFAULT_SETTINGS = get_default_settings()

app = FastAPI(
    title="ResultSheet API",
    description=(
        "Academic grading engine: z-score grades, best-six aggregates, "
        "rankings and facilitator performance from raw subject scores."
    ),
    version="1.0.0",
)

# CORS for the React dev server
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register route modules
app.include_router(grading_router, prefix="/api/grading", tags=["Grading"])


@app.get("/api/health")
async def health_check():
    return {
        "status": "ok",
        "school_name": SCHOOL_NAME,
    }


@app.get("/api/config")
async def get_config():
    """Return server configuration to the frontend."""
    return {
        "school_name": SCHOOL_NAME,
        "grading_defaults": DEFAULT_SETTINGS.to_dict(),
    }
