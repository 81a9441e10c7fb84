import os
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException
from sitemarket.db import Base, engine
import sitemarket.models  # noqa: F401 ensure models are imported so tables are known
from sitemarket.api import admin, checkout, routes, ws
from sitemarket.errors import MarketError
from sitemarket.realtime import hub
from sitemarket.scheduler import start_scheduler, stop_scheduler
from sitemarket.utils import UPLOAD_DIR, logger

load_dotenv()

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",") if o.strip()]
SCHEDULER_ENABLED = os.getenv("SCHEDULER_ENABLED", "1") == "1"

# create FastAPI instance
app = FastAPI(title="sitemarket")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)

app.include_router(routes.router)
app.include_router(admin.router)
app.include_router(checkout.router)
app.include_router(ws.router)

os.makedirs(UPLOAD_DIR, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=UPLOAD_DIR), name="uploads")


@app.exception_handler(MarketError)
async def market_error_handler(request: Request, exc: MarketError):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(p) for p in first.get("loc", ())[1:])
    message = f"{field}: {first.get('msg', 'invalid')}" if field else "Invalid request"
    return JSONResponse(status_code=400, content={"error": message})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


@app.on_event("startup")
async def on_startup():
    # Ensure database tables are created on startup
    Base.metadata.create_all(bind=engine)
    await hub.start()
    if SCHEDULER_ENABLED:
        start_scheduler()


@app.on_event("shutdown")
async def on_shutdown():
    await hub.stop()
    stop_scheduler()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", 5000)))
