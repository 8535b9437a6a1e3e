"""Main FastAPI application."""
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from copilot.config import settings
from copilot.booking import routes as booking_routes
from copilot.middleware import limiter, setup_rate_limiting
from copilot.revenue_memory import routes as revenue_memory_routes

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

# Create FastAPI app
app = FastAPI(
    title="Copilot Core API",
    description="Booking slots and revenue memory for the business co-pilot",
    version="0.1.0",
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

setup_rate_limiting(app)

# Include routers
app.include_router(booking_routes.router, prefix=f"{settings.API_V1_PREFIX}/booking", tags=["Booking"])
app.include_router(
    revenue_memory_routes.router,
    prefix=f"{settings.API_V1_PREFIX}/revenue-memory",
    tags=["Revenue Memory"],
)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Copilot Core API",
        "version": "0.1.0",
        "docs": "/docs",
    }


@app.get("/health")
@limiter.exempt
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "copilot.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
