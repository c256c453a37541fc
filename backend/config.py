"""
config.py — Environment-driven settings for the mini-pauta service.

Values are read once at import from the process environment (a local .env
file is loaded first). The pauta package never reads these directly;
routes pass them in.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

SCHOOL_NAME = os.getenv("SCHOOL_NAME", "My School")

# Secondary-school "excellent" band starts here (0-20 scale)
EXCELLENT_THRESHOLD = float(os.getenv("EXCELLENT_THRESHOLD", "14"))

# Comma-separated allowed origins, e.g. http://localhost:5173,https://app.example.com
raw_origins = os.getenv("CORS_ORIGINS", "http://localhost:5173,http://localhost:3000")
CORS_ORIGINS = [o.strip() for o in raw_origins.split(",") if o.strip()]

# Generated PDF/Excel files live here until the response has been sent.
REPORTS_DIR = Path(os.getenv("REPORTS_DIR", str(Path(__file__).resolve().parent / "uploads" / "reports")))
REPORTS_DIR.mkdir(parents=True, exist_ok=True)
