from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from contextlib import asynccontextmanager
import uvicorn

from bidding_api.core.config import settings
from bidding_api.core.database import create_db_and_tables, close_db
from bidding_api.core.logging import setup_logging
from bidding_api.middleware.logging_middleware import LoggingMiddleware, StructlogMiddleware
from bidding_api.controllers import product_controller

logger = setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application startup", environment=settings.environment)
    try:
        await create_db_and_tables()
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error("Failed to initialize database", error=str(e))
        raise

    yield

    logger.info("Application shutdown")
    try:
        await close_db()
        logger.info("Database connections closed")
    except Exception as e:
        logger.error("Error during shutdown", error=str(e))


app = FastAPI(
    title="Bidding Marketplace API",
    description="Product listings, moderation and current bidding prices for the bidding marketplace",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs" if settings.environment == "local" else None,
    redoc_url="/redoc" if settings.environment == "local" else None,
)

# Registered in reverse: LoggingMiddleware runs first and sets the request id
app.add_middleware(StructlogMiddleware)
app.add_middleware(LoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(product_controller.router, prefix=settings.api_prefix)


@app.get("/")
async def root():
    return {
        "message": "Bidding Marketplace API is running",
        "version": "1.0.0",
        "environment": settings.environment,
        "docs_url": "/docs" if settings.environment == "local" else "Documentation disabled in production"
    }


@app.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "environment": settings.environment,
    }


def _error_body(status_code: int, message) -> dict:
    return {
        "message": message,
        "success": False,
        "status_code": status_code
    }


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request, exc):
    logger.warning(
        "HTTP Exception",
        status_code=exc.status_code,
        detail=exc.detail,
        path=request.url.path,
        method=request.method
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(exc.status_code, exc.detail),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request, exc):
    errors = exc.errors()
    logger.warning(
        "Request validation failed",
        path=request.url.path,
        method=request.method,
        errors=str(errors)[:300]
    )
    fields = ", ".join(
        ".".join(str(part) for part in error.get("loc", ())[1:]) or "body" for error in errors
    )
    return JSONResponse(
        status_code=400,
        content=_error_body(400, f"Invalid input: {fields}"),
    )


@app.exception_handler(Exception)
async def general_exception_handler(request, exc):
    logger.error(
        "Unhandled Exception",
        error=str(exc),
        path=request.url.path,
        method=request.method
    )
    return JSONResponse(
        status_code=500,
        content=_error_body(500, "Internal server error")
    )


if __name__ == "__main__":
    uvicorn.run(
        "bidding_api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.environment == "local",
        log_config=None
    )
