import logging
import os

from dotenv import load_dotenv
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# ----------------------------------------------------
# LOAD .ENV (before settings are read)
# ----------------------------------------------------
load_dotenv()

from app.config import settings  # noqa: E402
from app.db import engine  # noqa: E402
from app.errors import PayoutError  # noqa: E402
from models import Base  # noqa: E402

from routers import auth_admin, payouts_admin  # noqa: E402

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# ----------------------------------------------------
# FASTAPI APP
# ----------------------------------------------------
app = FastAPI(
    title="Marketplace Payouts",
    version="1.0.0",
)

# ----------------------------------------------------
# CORS CONFIG
# ----------------------------------------------------
cors_env = os.getenv(
    "CORS_ORIGINS",
    ",".join([
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ])
)

origins = [o.strip() for o in cors_env.split(",") if o.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.options("/{path:path}")
async def options_handler(path: str, request: Request):
    return Response(status_code=204)


# ----------------------------------------------------
# DOMAIN ERRORS -> HTTP
# ----------------------------------------------------
@app.exception_handler(PayoutError)
async def payout_error_handler(request: Request, exc: PayoutError):
    logger.info("PAYOUT: %s %s -> %s %s", request.method, request.url.path, exc.status_code, exc.detail)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


# ----------------------------------------------------
# DB INIT (DEV ONLY)
# ----------------------------------------------------
if os.getenv("ENV", "dev") == "dev" and os.getenv("DB_AUTO_CREATE") == "1":
    Base.metadata.create_all(bind=engine)

# ----------------------------------------------------
# ROUTERS
# ----------------------------------------------------
app.include_router(auth_admin.router)
app.include_router(payouts_admin.router)


@app.get("/")
def root():
    return {"message": "Marketplace payouts backend up and running"}


@app.get("/health")
def health():
    return {"ok": True}
