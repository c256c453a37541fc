"""
Mini-Pauta — grade summary reports for a class/discipline/term.
FastAPI backend entry point.
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import CORS_ORIGINS, EXCELLENT_THRESHOLD, SCHOOL_NAME
from routes.mini_pauta import router as mini_pauta_router

app = FastAPI(
    title="Mini-Pauta API",
    description=(
        "Grade aggregation and mini-pauta assembly: grouped component "
        "columns, term and annual finals, grade colour bands and class statistics."
    ),
    version="1.0.0",
)

# CORS: allow the web front-end
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(mini_pauta_router, prefix="/api/mini-pauta", tags=["Mini-Pauta"])


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
        "excellent_threshold": EXCELLENT_THRESHOLD,
    }
