"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from clinicforms.config import get_settings
from clinicforms.database import init_db
from clinicforms.routers import builder, templates, documents

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    yield


app = FastAPI(
    title="Clinic Document Builder",
    description="Structured clinical form templates with layout, calculations, prefill and tamper-proof submissions",
    version="2.0.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(builder.router, prefix="/api/builder", tags=["Builder"])
app.include_router(templates.router, prefix="/api/templates", tags=["Templates"])
app.include_router(documents.router, prefix="/api/documents", tags=["Documents"])


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": "clinic-forms-backend"}


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Clinic Document Builder API",
        "docs": "/docs",
        "health": "/health",
    }
