import logging
import math
import os
import sys
from pathlib import Path

import psycopg2
from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

_project_root = Path(__file__).resolve().parent.parent
if str(_project_root) not in sys.path:
    sys.path.append(str(_project_root))

load_dotenv()

from planledger import app_context
from planledger.app.routes.claims import router as claims_router
from planledger.app.routes.entitlements import router as entitlements_router
from planledger.app.routes.payments import router as payments_router
from planledger.app.routes.reconciliation import router as reconciliation_router
from planledger.app.services.engine import get_engine_config


def _parse_connect_timeout(raw_value: str) -> int:
    try:
        timeout = float(raw_value)
    except ValueError as exc:
        raise ValueError("DB_CONNECT_TIMEOUT must be a number") from exc
    if timeout < 0:
        raise ValueError("DB_CONNECT_TIMEOUT must be non-negative")
    return int(math.ceil(timeout))

DB_CFG = dict(
    host=os.getenv("DB_HOST", "127.0.0.1"),
    port=int(os.getenv("DB_PORT", "5432")),
    dbname=os.getenv("DB_NAME", "planledger_db"),
    user=os.getenv("DB_USER", "planledger"),
    password=os.getenv("DB_PASSWORD", "planledger"),
    connect_timeout=_parse_connect_timeout(os.getenv("DB_CONNECT_TIMEOUT", "5")),
)

CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:5173").split(",")
    if origin.strip()
]

logger = logging.getLogger("planledger")


def get_conn():
    return psycopg2.connect(**DB_CFG)


app_context.configure(get_conn=get_conn)

# run: uvicorn planledger.main:app --host 127.0.0.1 --port 8000 --reload
app = FastAPI(title="Planledger Entitlement Engine")

# Admin console origin
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(payments_router)
app.include_router(entitlements_router)
app.include_router(claims_router)
app.include_router(reconciliation_router)


@app.on_event("startup")
def log_engine_config() -> None:
    config = get_engine_config()
    logger.info(
        "Entitlement engine starting storage=%s guard=%s auto_sync_claims=%s send_invoices=%s",
        config.storage_backend,
        config.admin_guard_mode.value,
        config.auto_sync_claims,
        config.send_invoices,
    )


@app.get("/api/health")
def health():
    return {"ok": True}
