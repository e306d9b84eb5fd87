"""FastAPI server implementation for the Order Relay service."""

import os
from contextlib import asynccontextmanager
from typing import Optional

import requests
from confluent_kafka.admin import AdminClient
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from logging_utils.config import setup_service_logger

from .config import Settings, get_settings
from .pipeline import RelayPipeline
from .producer import OrderProducer
from .schemas import Order, describe_validation_error
from .store import StoreClient

# Configure service logger
logger = setup_service_logger(
    "order-relay",
    log_level=os.getenv("LOG_LEVEL", "INFO"),
    log_file=os.getenv("LOG_FILE"),
)


class RelayState:
    """Class to manage the clients shared by all requests."""

    def __init__(self) -> None:
        """Initialize an empty state; the lifespan fills it in."""
        self.settings: Optional[Settings] = None
        self.producer: Optional[OrderProducer] = None
        self.store: Optional[StoreClient] = None
        self.pipeline: Optional[RelayPipeline] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage the lifecycle of the FastAPI application.

    A producer that cannot be built aborts startup, and with it the process.

    Args:
        app: The FastAPI application instance
    """
    settings = get_settings()
    state.settings = settings
    state.producer = OrderProducer(settings)
    state.store = StoreClient(settings)
    state.pipeline = RelayPipeline(settings)
    state.pipeline.start()
    logger.info("Starting server")

    yield

    logger.info("Shutting down order relay...")
    state.pipeline.stop()
    state.producer.close()
    state.store.close()
    logger.info("Shutdown complete")


app = FastAPI(title="Order Relay", lifespan=lifespan)
state = RelayState()


@app.middleware("http")
async def access_log(request: Request, call_next):
    """Log one line per request: peer, request line, user agent and status."""
    response = await call_next(request)
    peer = request.client.host if request.client else "-"
    logger.info(
        f"{peer} \"{request.method} {request.url.path} HTTP/{request.scope.get('http_version', '1.1')}\" "
        f"{response.status_code} {request.headers.get('user-agent', '-')}"
    )
    return response


@app.exception_handler(RequestValidationError)
async def order_validation_handler(request: Request, exc: RequestValidationError):
    """Reject an unparseable order, naming the first bad field."""
    message = describe_validation_error(exc.errors())
    logger.warning(f"Rejected order body: {message}")
    return PlainTextResponse(message, status_code=400)


@app.exception_handler(requests.RequestException)
async def store_error_handler(request: Request, exc: requests.RequestException):
    """Surface store failures to the caller."""
    logger.error(f"Store request failed: {exc}")
    return JSONResponse({"detail": f"Store request failed: {exc}"}, status_code=502)


@app.get("/")
async def hello():
    """Liveness probe."""
    return PlainTextResponse("Hello world!")


@app.post("/placeorder")
async def place_order(order: Order):
    """Publish an order to the broker.

    The response only means the producer accepted the message into its local
    buffer; delivery is reported to the log by the delivery callback.

    Args:
        order (Order): The order to publish.

    Raises:
        BufferError: If the producer's buffer is full.
    """
    if state.producer is None:
        raise HTTPException(status_code=503, detail="Service unavailable")
    logger.info(f"Received new order: {order.orderid}")
    state.producer.publish_order(order)
    return PlainTextResponse("Order place order successfully")


@app.get("/getorders")
def get_orders():
    """Return every stored order, relaying the store's JSON body untouched."""
    if state.store is None:
        raise HTTPException(status_code=503, detail="Service unavailable")
    return Response(content=state.store.fetch_all(), media_type="application/json")


@app.get("/health/ready")
def readiness_check():
    """Check broker reachability and the state of both relay stages.

    Returns:
        dict: Readiness status, Kafka connection status and stage states.
    """
    kafka_ok = _check_kafka_connection()
    stages = dict(state.pipeline.stage_states) if state.pipeline else {}
    ready = kafka_ok and state.pipeline is not None and state.pipeline.is_healthy()
    return {"status": "ready" if ready else "not_ready", "kafka": kafka_ok, "stages": stages}


def _check_kafka_connection() -> bool:
    """Check if Kafka connection is available.

    Returns:
        bool: True if Kafka is accessible, False otherwise.
    """
    if state.settings is None:
        return False
    try:
        admin = AdminClient(state.settings.kafka_config())
        return bool(admin.list_topics(timeout=5))
    except Exception as e:
        logger.error(f"Kafka connection failed: {e}")
        return False
