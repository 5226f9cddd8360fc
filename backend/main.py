# backend/main.py
from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from dotenv import load_dotenv

from config import settings
from database import init_db
from services.errors import InventoryError

load_dotenv()

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Router imports
from routes.auth import router as auth_router
from routes.users import router as users_router
from routes.articles import router as articles_router
from routes.products import router as products_router
from routes.orders import router as orders_router
from routes.dashboard import router as dashboard_router
from routes.logs import router as logs_router


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Create missing tables on startup
    init_db()
    yield


app = FastAPI(title="Warehouse Inventory API", version="1.0.0", lifespan=lifespan)

# CORS Configuration
origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]
if settings.FRONTEND_URL:
    origins.append(settings.FRONTEND_URL)

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Inventory service errors -> HTTP responses (400 / 404 / 500)
@app.exception_handler(InventoryError)
async def inventory_error_handler(request: Request, exc: InventoryError):
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, "code": exc.code})


# Router registration
app.include_router(auth_router)
app.include_router(users_router)
app.include_router(articles_router)
app.include_router(products_router)
app.include_router(orders_router)
app.include_router(dashboard_router)
app.include_router(logs_router)

@app.get("/")
def read_root():
    return {"message": "Warehouse Inventory API is running"}
