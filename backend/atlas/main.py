"""Tabletop Atlas — FastAPI Application Entry Point."""

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from atlas import __version__
from atlas.config import settings
from atlas.database import SessionLocal, init_db
from atlas.errors import AtlasError
from atlas.middleware.rate_limit import limiter
from atlas.routers import chat, games, house_rules
from atlas.seed import seed_sample_games
from atlas.services.ai_client import ai_health_check, provider_names

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Create all tables on startup
init_db()

# ── CORS origins from env ────────────────────────────────────────────────────
_cors_origins = [o.strip() for o in settings.ALLOWED_ORIGINS.split(",") if o.strip()]

app = FastAPI(
    title="Tabletop Atlas",
    description="Board game rules management with retrieval-augmented rules chat.",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AtlasError)
async def atlas_error_handler(request: Request, exc: AtlasError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, "error": exc.code})


# Routers
app.include_router(games.router)
app.include_router(house_rules.router)
app.include_router(chat.router)


@app.on_event("startup")
async def on_startup():
    """Seed the sample catalogue if asked to, and log the AI providers."""
    if settings.SEED_SAMPLE_GAMES:
        db = SessionLocal()
        try:
            seed_sample_games(db)
        finally:
            db.close()

    providers = provider_names()
    if providers["llm"] == "none":
        print("\n" + "=" * 60)
        print("  ⚠  CHAT MODEL NOT CONFIGURED")
        print("  Set LLM_PROVIDER in backend/.env to one of:")
        print("    ollama     (OLLAMA_BASE_URL, LLM_MODEL)")
        print("    oci        (OCI_CONFIG_FILE, ORACLE_GENAI_COMPARTMENT_ID, ORACLE_GENAI_MODEL)")
        print("    anthropic  (ANTHROPIC_API_KEY)")
        print("  and restart. Visit /api/health/ai to verify.")
        print("=" * 60 + "\n")
    else:
        print(f"\n  ✓  Chat model: {providers['llm']}")
    print(f"  ✓  Embeddings: {providers['embedding']}\n")


@app.get("/health")
def health():
    return {"status": "ok", "version": __version__, "ai_providers": provider_names()}


@app.get("/api/health/ai")
async def health_ai():
    """Live connectivity test for the configured embedding and chat providers.

    Returns, per provider:
        provider: which backend and model is active
        status:   "ok" | "error" | "unconfigured"
        dimensions / test_reply / error: result of a tiny test call
    """
    return await ai_health_check()
