"""FastAPI application entry point."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from pulse import __version__
from pulse.api.routes import accounts, admin, link_plans, llm, pages, sites
from pulse.config import get_settings
from pulse.database import engine
from pulse.services.llm_client import LLMClient

ROUTERS = [
    (sites.router, "/api/sites", "sites"),
    (pages.router, "/api/pages", "pages"),
    (accounts.router, "/api/accounts", "accounts"),
    (link_plans.router, "/api/link-plans", "link-plans"),
    (admin.router, "/api/admin", "admin"),
    (llm.router, "/api/llm", "llm"),
]


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await engine.dispose()


settings = get_settings()

app = FastAPI(
    title=settings.app_name,
    description="Crawl, classify and generate schema markup for practice websites",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

for router, prefix, tag in ROUTERS:
    app.include_router(router, prefix=prefix, tags=[tag])


@app.get("/api/health")
async def health_check():
    """Liveness plus which LLM providers have keys configured."""
    return {
        "status": "healthy",
        "providers": LLMClient(get_settings()).available_providers(),
    }


@app.get("/")
async def root():
    return {"name": settings.app_name, "version": __version__, "docs": "/docs"}
