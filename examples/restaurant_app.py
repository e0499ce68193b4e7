"""Example restaurant application with channel logging.

Run with:
    uvicorn examples.restaurant_app:app --reload

Log files are written to ./logs (one per channel destination).

Endpoints:
    /api/products, /api/products/{id}   - menu
    /api/cart, /api/orders              - ordering (POST)
    /api/reservations                   - table reservations (GET, POST)
    /api/traffic/status                 - virtual traffic status
    /api/traffic/config                 - update virtual traffic (POST)
    /logging/...                        - runtime logging control and analytics

Set PERFLOG_ACCESS_FORMAT=json (or csv, xml, string) to change the access
log format at startup, or POST /logging/formats while running.
"""

import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from perflog import build_manager
from perflog.adapters.frameworks.asgi import RequestLoggingMiddleware
from perflog.adapters.frameworks.fastapi import create_logging_router
from perflog.adapters.logging import ChannelHandler
from perflog.simulation import TrafficConfig, TrafficManager

manager = build_manager(log_dir="logs")

# Application log records land on the event channel
app_logger = logging.getLogger("restaurant")
app_logger.setLevel(logging.INFO)
app_logger.addHandler(ChannelHandler(manager.event))

PRODUCTS = {
    product_id: {"id": product_id, "name": f"Dish {product_id}", "price": 8 + product_id}
    for product_id in range(1, 21)
}
RESERVATIONS: list[dict] = []


class OrderItem(BaseModel):
    product_id: int = Field(alias="productId")
    quantity: int = Field(default=1, ge=1)


class Order(BaseModel):
    items: list[OrderItem] = Field(default_factory=list)


class Reservation(BaseModel):
    name: str
    party_size: int = Field(alias="partySize", ge=1, le=20)


class TrafficUpdate(BaseModel):
    enabled: bool | None = None
    target_concurrent_users: int | None = Field(default=None, ge=0)
    journey_pattern: str | None = None
    timing: str | None = None
    think_time_scale: float | None = Field(default=None, gt=0)


traffic: TrafficManager | None = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    global traffic
    manager.start()
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app), base_url="http://restaurant"
    ) as client:
        traffic = TrafficManager(client, manager, TrafficConfig(enabled=False))
        yield
        await traffic.shutdown()
    await manager.stop()


app = FastAPI(title="Restaurant Example", lifespan=lifespan)
app.add_middleware(RequestLoggingMiddleware, manager=manager, exclude_paths=["/health"])
app.include_router(create_logging_router(manager))


@app.get("/")
async def root() -> dict[str, str]:
    return {"message": "Welcome! See /api/products and /logging/analytics."}


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/api/products")
async def list_products() -> list[dict]:
    return list(PRODUCTS.values())


@app.get("/api/products/{product_id}")
async def get_product(product_id: int) -> dict:
    product = PRODUCTS.get(product_id)
    if product is None:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


@app.post("/api/cart")
async def add_to_cart(order: Order) -> dict:
    with manager.timed("cart_update", items=len(order.items)):
        count = sum(item.quantity for item in order.items)
    return {"items": count}


@app.post("/api/orders", status_code=201)
async def place_order(order: Order) -> dict:
    unknown = [item.product_id for item in order.items if item.product_id not in PRODUCTS]
    if unknown:
        raise HTTPException(status_code=422, detail=f"Unknown products: {unknown}")
    total = sum(PRODUCTS[item.product_id]["price"] * item.quantity for item in order.items)
    manager.log_business_event("order_placed", "checkout", details={"total": total})
    app_logger.info("Order placed", extra={"total": total})
    return {"total": total}


@app.get("/api/reservations")
async def list_reservations() -> list[dict]:
    return RESERVATIONS


@app.post("/api/reservations", status_code=201)
async def make_reservation(reservation: Reservation) -> dict:
    entry = {"id": len(RESERVATIONS) + 1, **reservation.model_dump(by_alias=True)}
    RESERVATIONS.append(entry)
    manager.log_business_event("reservation_made", "reserve", details=entry)
    return entry


@app.get("/api/traffic/status")
async def traffic_status() -> dict:
    if traffic is None:
        raise HTTPException(status_code=503, detail="Traffic generator not ready")
    return traffic.status()


@app.post("/api/traffic/config")
async def traffic_config(update: TrafficUpdate) -> dict:
    if traffic is None:
        raise HTTPException(status_code=503, detail="Traffic generator not ready")
    try:
        traffic.update_config(**update.model_dump(exclude_none=True))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return traffic.status()
