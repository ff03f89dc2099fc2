"""
Cromwell CMS - Backend API
"""
import logging
import time
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables before settings are read
env_path = Path(__file__).parent.parent / '.env'
load_dotenv(env_path)

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from cromwell.api import cms, orders, product_reviews, products
from cromwell.core.config import settings
from cromwell.core.database import get_db_connection_with_retry
from cromwell.core.exceptions import CmsError
from cromwell.core.logger import setup_logging
from cromwell.services.cache_manager import get_cache_manager
from cromwell.services.cache_strategy import get_cache_strategy_manager
from cromwell.services.performance_monitor import PerformanceMiddleware

setup_logging(logging.DEBUG if settings.is_development else logging.INFO)
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.API_TITLE,
    version=settings.API_VERSION,
    description=settings.API_DESCRIPTION
)

app.add_middleware(PerformanceMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_allowed_origins(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["*"],
    expose_headers=["*"],
)


@app.exception_handler(CmsError)
async def cms_error_handler(request: Request, exc: CmsError):
    """Translate domain errors into HTTP responses"""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"status": "error", "detail": exc.message, "status_code": exc.status_code}
    )


@app.on_event("startup")
async def warm_up_caches():
    """Preload warm-up strategies (failures are logged, startup continues)"""
    strategy_manager = get_cache_strategy_manager()
    strategy_manager.register_warm_up_provider(
        "product_data", products.get_product_repository().get_cache_warm_up_data
    )
    strategy_manager.warm_up_all()


# Include API routers
app.include_router(products.router, prefix="/api/v1/products", tags=["Products"])
app.include_router(orders.router, prefix="/api/v1/orders", tags=["Orders"])
app.include_router(product_reviews.router, prefix="/api/v1/product-reviews", tags=["Product Reviews"])
app.include_router(cms.router, prefix="/api/v1/cms", tags=["CMS"])


@app.get("/")
async def root():
    """Root endpoint - API status"""
    return {
        "message": settings.API_TITLE,
        "status": "online",
        "version": settings.API_VERSION,
    }


@app.get("/health")
async def health():
    """Health check endpoint - tests database and cache connectivity"""
    start_time = time.time()

    db_status = "unknown"
    db_latency_ms = None
    db_error = None

    try:
        # Fast check: a single attempt with a short retry delay
        conn = get_db_connection_with_retry(max_retries=1, retry_delay=0.5)
        cursor = conn.cursor()
        cursor.execute("SELECT 1")
        cursor.fetchone()
        cursor.close()
        conn.close()
        db_status = "connected"
        db_latency_ms = round((time.time() - start_time) * 1000, 2)
    except Exception as e:
        db_status = "error"
        db_error = str(e)[:100]

    cache_stats = get_cache_manager().get_stats()

    response = {
        "status": "healthy" if db_status == "connected" else "degraded",
        "database": db_status,
        "db_latency_ms": db_latency_ms,
        "cache": {
            "memory_entries": cache_stats["memory"]["size"],
            "redis": "connected" if cache_stats["redis"] and cache_stats["redis"]["connected"] else "disabled",
        },
        "timestamp": time.time()
    }
    if db_error:
        response["db_error"] = db_error

    return response


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("cromwell.main:app", host=settings.API_HOST, port=settings.API_PORT)
