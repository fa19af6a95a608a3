import logging
import os
import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from pymongo.errors import DuplicateKeyError
from starlette.exceptions import HTTPException as StarletteHTTPException

import database
from auth import AuthError
from routes import api_router
from storage import UPLOAD_DIR

# Configuration
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

API_PREFIX = os.getenv("API_PREFIX", "/api")
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]


@asynccontextmanager
async def lifespan(app: FastAPI):
    if database.db is not None:
        database.ensure_indexes()
        logger.info("Database indexes ensured")
    else:
        logger.warning("DATABASE_URL / DATABASE_NAME not set; running without a database")
    yield


# App and CORS
app = FastAPI(title="SedNex API", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_logging_middleware(request: Request, call_next):
    request_id = uuid.uuid4().hex[:12]
    logger.info(f"rid={request_id} | START | {request.method} {request.url.path}")
    start_time = time.time()
    response = await call_next(request)
    elapsed = f"{(time.time() - start_time) * 1000:.2f}ms"
    response.headers["X-Request-ID"] = request_id
    logger.info(f"rid={request_id} | END | status={response.status_code} | {elapsed}")
    return response


# Error handling
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    headers = getattr(exc, "headers", None)
    if isinstance(exc, AuthError):
        return JSONResponse(status_code=exc.status_code, content={"message": exc.detail}, headers=headers)
    return JSONResponse(status_code=exc.status_code, content={"success": False, "message": exc.detail},
                        headers=headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(p) for p in first.get("loc", ()) if p not in ("body", "query", "path"))
        message = f"{field}: {first.get('msg')}" if field else str(first.get("msg"))
    else:
        message = "Invalid request"
    return JSONResponse(status_code=400, content={"success": False, "message": message})


@app.exception_handler(DuplicateKeyError)
async def duplicate_key_handler(request: Request, exc: DuplicateKeyError):
    logger.warning(f"Duplicate key on {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=409, content={"success": False, "message": "Duplicate value"})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception for {request.method} {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(status_code=500, content={"success": False, "message": "Internal server error"})


app.include_router(api_router, prefix=API_PREFIX)
app.mount("/uploads", StaticFiles(directory=UPLOAD_DIR, check_dir=False), name="uploads")


# Health
@app.get("/")
def read_root():
    return {"message": "SedNex API is running"}


@app.get("/test")
def test_database():
    status = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": "❌ Not Set" if not os.getenv("DATABASE_URL") else "✅ Set",
        "database_name": "❌ Not Set" if not os.getenv("DATABASE_NAME") else "✅ Set",
        "collections": []
    }
    try:
        if database.db is not None:
            status["collections"] = database.db.list_collection_names()
            status["database"] = "✅ Connected"
    except Exception as e:
        status["database"] = f"❌ Error: {str(e)[:80]}"
    return status


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
