"""FastAPI application setup for RouteWind."""

from fastapi import FastAPI

from .api import router as api_router

app = FastAPI(title="RouteWind")


@app.get("/health")
def health():
    """Liveness check."""
    return {"status": "ok"}


# API routes
app.include_router(api_router, prefix="/v1")
