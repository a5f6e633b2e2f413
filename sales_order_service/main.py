"""
main.py — FastAPI Entry Point for the Sales Order Service

HTTP facade over the cart / pricing / order-submission core, consumed by the
sales app's screens. It holds no business logic of its own.

Responsibilities:
    • Cart operations and derived totals
    • Customer selection (persisted across restarts)
    • Category list with cache-or-fetch semantics
    • Debounced search text and order comments
    • Order submission with classified, user-facing errors
    • Health check

The caller's `Authorization: Bearer <token>` header is forwarded to the OMS.
"""

from typing import Optional

from fastapi import Depends, FastAPI, Header, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .config import CONTEXT_STORE_PATH, DEFAULT_PRICE_LIST
from .errors import OrderServiceError, SubmissionInProgressError
from .logging_config import get_logger, setup_logging
from .models import AuthContext, CartLineItem, SelectedCustomer
from .pricing import format_amount
from .session import SalesSession
from .storage import JsonFileStore

# Initialization
setup_logging()
log = get_logger(__name__)
app = FastAPI(title="Sales Order Service")
app.state.session = SalesSession(JsonFileStore(CONTEXT_STORE_PATH))

ERROR_STATUS = {
    "validation": 422,
    "auth": 401,
    "network": 503,
    "server": 502,
    "in_progress": 409,
}


class AddItemRequest(BaseModel):
    item: CartLineItem
    quantity: int = 1


class UpdateQuantityRequest(BaseModel):
    quantity: int


class TextRequest(BaseModel):
    value: str = Field("", max_length=2000)


def get_session() -> SalesSession:
    return app.state.session


def get_auth(authorization: Optional[str] = Header(None), x_user: Optional[str] = Header(None)) -> AuthContext:
    token = None
    if authorization and authorization.lower().startswith("bearer "):
        token = authorization[7:].strip() or None
    return AuthContext(token=token, user=x_user)


def error_response(error: OrderServiceError) -> JSONResponse:
    return JSONResponse(
        status_code=ERROR_STATUS.get(error.reason, 500),
        content={"reason": error.reason, "message": error.message, "retryable": error.retryable},
    )


@app.on_event("shutdown")
async def on_shutdown():
    log.info("Sales Order Service shutting down, cancelling pending timers.")
    await app.state.session.close()


# --- Cart ---

def cart_view(session: SalesSession) -> dict:
    lines = []
    for line in session.cart.list():
        unit_price = session.cart.unit_price(line.itemCode)
        lines.append({
            **line.model_dump(mode="json"),
            "unitPrice": str(unit_price),
            "subtotal": str(unit_price * line.quantity),
        })
    total = session.cart.total()
    return {"lines": lines, "count": len(session.cart), "total": str(total), "totalDisplay": format_amount(total)}


@app.get("/cart")
async def get_cart(session: SalesSession = Depends(get_session)):
    return cart_view(session)


@app.post("/cart/items", status_code=201)
async def add_item(request: AddItemRequest, session: SalesSession = Depends(get_session)):
    session.cart.add_or_merge_item(request.item, request.quantity)
    return cart_view(session)


@app.patch("/cart/items/{item_code}")
async def update_item(item_code: str, request: UpdateQuantityRequest, session: SalesSession = Depends(get_session)):
    session.cart.update_quantity(item_code, request.quantity)
    return cart_view(session)


@app.delete("/cart/items/{item_code}")
async def remove_item(item_code: str, session: SalesSession = Depends(get_session)):
    session.cart.remove_item(item_code)
    return cart_view(session)


@app.delete("/cart")
async def clear_cart(session: SalesSession = Depends(get_session)):
    session.cart.clear()
    return cart_view(session)


# --- Customer & catalog context ---

@app.put("/customer")
async def select_customer(customer: SelectedCustomer, session: SalesSession = Depends(get_session)):
    session.select_customer(customer)
    return {"customer": customer.model_dump(), "priceList": customer.effective_price_list}


@app.get("/customer")
async def get_customer(session: SalesSession = Depends(get_session)):
    customer = session.customer
    return {
        "customer": customer.model_dump() if customer else None,
        "priceList": customer.effective_price_list if customer else DEFAULT_PRICE_LIST,
    }


@app.get("/categories")
async def get_categories(refresh: bool = False, session: SalesSession = Depends(get_session),
                         auth: AuthContext = Depends(get_auth)):
    """
    Returns the category list ("Ofertas" first), from cache unless `refresh` is set.

    Errors are returned with `retryable` so the screen can offer a retry button.
    """
    async with session.catalog_client(auth) as catalog:
        try:
            categories = await session.categories_cache(catalog).get_categories(force_refresh=refresh)
        except OrderServiceError as e:
            log.error(f"[Catalog] Categories unavailable: {e.message}")
            return error_response(e)
    return [{**c.model_dump(), "title": c.title} for c in categories]


# --- Debounced text ---

@app.put("/search")
async def set_search(request: TextRequest, session: SalesSession = Depends(get_session)):
    session.search.set_raw(request.value)
    return {"raw": session.search.raw, "settled": session.search.settled}


@app.delete("/search")
async def clear_search(session: SalesSession = Depends(get_session)):
    session.search.clear()
    return {"raw": "", "settled": ""}


@app.get("/search")
async def get_search(session: SalesSession = Depends(get_session)):
    return {"raw": session.search.raw, "settled": session.search.settled}


@app.put("/comments")
async def set_comments(request: TextRequest, session: SalesSession = Depends(get_session)):
    session.comments.set_raw(request.value)
    return {"raw": session.comments.raw, "settled": session.comments.settled}


@app.get("/comments")
async def get_comments(session: SalesSession = Depends(get_session)):
    return {"raw": session.comments.raw, "settled": session.comments.settled}


@app.delete("/comments")
async def clear_comments(session: SalesSession = Depends(get_session)):
    session.comments.clear()
    return {"raw": "", "settled": ""}


# --- Orders ---

@app.post("/orders/submit", status_code=201)
async def submit_order(session: SalesSession = Depends(get_session), auth: AuthContext = Depends(get_auth)):
    """
    Submits the current cart to the OMS.

    Returns:
        201 {"status": "succeeded", "docEntry": ...} on success. On failure the
        cart is left untouched and the classified error is returned with
        422 (validation), 401 (auth), 503 (network), 502 (server) or 409 (in progress).
    """
    try:
        result = await session.submit_order(auth)
    except SubmissionInProgressError as e:
        return error_response(e)

    if result.ok:
        return result.model_dump()
    return JSONResponse(status_code=ERROR_STATUS.get(result.reason, 500), content=result.model_dump())


@app.get("/orders/last")
async def last_order(session: SalesSession = Depends(get_session)):
    doc_entry = session.pipeline.last_doc_entry
    if doc_entry is None:
        raise HTTPException(status_code=404, detail="No order submitted in this session.")
    return {"docEntry": doc_entry}


# Health Check Endpoint
@app.get("/health")
async def health_check():
    return {"status": "ok"}
