from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException
from api.v1 import users
from core.config import settings
from db.mongodb import close_mongo_client, get_mongo_db, init_mongo_indexes
from utils.api_error import ApiError, InternalError, ValidationError
from utils.logging_config import configure_logging, RequestContextMiddleware
from utils.responses import render

# Configure logging with date-based files and TTL retention
logger = configure_logging("videotube")

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.VERSION,
    debug=settings.DEBUG
)

# Errors raised outside the handlers (guards, body parsing) get the same envelope
@app.exception_handler(ApiError)
async def api_error_handler(request: Request, exc: ApiError):
    if exc.status_code >= 500:
        logger.error(f"{exc!r} at {request.url.path}")
    return render(exc)

@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = [
        {
            "field": ".".join(str(part) for part in err.get("loc", ())[1:]) or "body",
            "message": err.get("msg", "Invalid value"),
        }
        for err in exc.errors()
    ]
    return render(ValidationError("Invalid request payload", errors=errors))

@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return render(ApiError(str(exc.detail), status_code=exc.status_code))

# Global exception handler to ensure 500s for unexpected errors
@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error at {request.url.path}: {exc}")
    return render(InternalError())

# Add GZip compression for larger JSON payloads
app.add_middleware(GZipMiddleware, minimum_size=500)

# Add logging context middleware to capture user_id and API path
app.add_middleware(RequestContextMiddleware)

# CORS middleware; credentials are needed for the token cookies
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(users.router, tags=["Users"])

@app.on_event("startup")
async def startup_db_client():
    """Ensure Mongo indexes (unique username / email) exist"""
    try:
        await init_mongo_indexes()
        logger.info("Mongo indexes ensured")
    except Exception as e:
        logger.warning(f"Mongo init skipped or failed: {e}")
    logger.info("Application startup complete")

@app.on_event("shutdown")
async def shutdown_db_client():
    close_mongo_client()
    logger.info("Application shutdown complete")

@app.get("/")
async def root():
    return {"message": settings.APP_NAME, "version": settings.VERSION}

@app.get("/health")
async def health_check():
    try:
        await get_mongo_db().command({"ping": 1})
        return {"status": "healthy", "database": "mongo_connected"}
    except Exception as e:
        logger.warning(f"Health Mongo check failed: {e}")
        return {"status": "degraded", "database": "mongo_unavailable"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=settings.DEBUG)
