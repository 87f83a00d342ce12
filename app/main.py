import logging
from datetime import datetime, timezone

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.log import setup_logging
from app.core.middleware import SecurityHeadersMiddleware
from app.modules.token_purchase.router import router as token_purchase_router

logger = logging.getLogger(__name__)

DOCS_URL = "/api/docs"

API_DESCRIPTION = """
Backend for recording and fulfilling token purchases.

- Purchase tokens with ETH, USDT or USDC; amounts are strings in wei.
- Fulfill purchases by id, by wallet, in batches, or all pending at once,
  recording the mint transaction hash. The first hash recorded for a purchase
  is kept; later fulfillment calls return it unchanged.

Common response codes: 200, 201, 400 (validation), 404 (not found), 500.
"""

tags_metadata = [
    {"name": "token-purchase", "description": "Token purchase requests and fulfillment"},
    {"name": "health", "description": "Health check"},
]

app = FastAPI(
    title=settings.PROJECT_NAME,
    description=API_DESCRIPTION,
    version="1.0.0",
    openapi_tags=tags_metadata,
    docs_url=DOCS_URL,
    openapi_url=f"{DOCS_URL}/openapi.json",
)

@app.on_event("startup")
async def startup_event():
    setup_logging(settings)
    logger.info(f"Application is running on: http://{settings.HOST}:{settings.PORT}")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Log levels: {', '.join(settings.enabled_log_levels)}")
    logger.info(f"Swagger documentation is available at: {DOCS_URL}")

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    # Validation errors are client errors: 400 with per-field detail
    logger.warning(f"Validation failed for {request.method} {request.url.path}: {exc.errors()}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": jsonable_encoder(exc.errors())},
    )

@app.get("/", tags=["health"])
def health():
    return {
        "status": "healthy",
        "service": settings.PROJECT_NAME,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.BACKEND_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "HEAD", "PUT", "PATCH", "POST", "DELETE"],
    allow_headers=["Content-Type", "Accept", "Authorization"],
    expose_headers=["Authorization"],
)

app.add_middleware(SecurityHeadersMiddleware)

app.include_router(token_purchase_router, prefix=f"{settings.API_PREFIX}/token-purchase", tags=["token-purchase"])

if __name__ == "__main__":
    setup_logging(settings)
    logger.info(f"Starting application on port {settings.PORT}")
    uvicorn.run(app, host=settings.HOST, port=settings.PORT)
