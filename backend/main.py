import logging

from fastapi import FastAPI
import uvicorn
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from core.config import settings
from db.database import create_db_and_tables
from routers.inventory import router as inventory_router
from routers.orders import router as orders_router
from routers.recipes import router as recipes_router

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await create_db_and_tables()
    yield


app = FastAPI(
    title="Cafe POS Inventory API",
    description="Inventory consumption engine for a cafe point of sale",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Stock, ledger and alerts
app.include_router(inventory_router, prefix="/inventory", tags=["inventory"])

# Menu item -> ingredient mappings
app.include_router(recipes_router, prefix="/recipes", tags=["recipes"])

# Sales
app.include_router(orders_router, prefix="/orders", tags=["orders"])

if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
