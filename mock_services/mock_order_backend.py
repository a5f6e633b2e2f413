"""
mock_order_backend.py — Mock Implementation of the Order Management System (REST API)

Simulated OMS backend for local development and end-to-end tests of the
sales order service. Exposes the two endpoints the service consumes.

Simulation Scenarios:
    • Missing / invalid bearer token → HTTP 401
    • cardCode starting with "C_REJECT_" → business rejection (HTTP 400)
    • cardCode starting with "C_ERROR_" → internal error (HTTP 500)
    • cardCode starting with "C_SLOW_" → slow response (simulated latency)
    • Any other order → created, sequential docEntry

Endpoints:
    GET  /items/categories — Product categories of the catalog.
    POST /orders           — Creates a sales order.

Port:
    Default: 8002 (HTTP)
"""

import itertools
import logging
import time
from typing import List, Optional

from fastapi import FastAPI, Header, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

app = FastAPI(title="Mock Order Management System")
log = logging.getLogger(__name__)

VALID_TOKEN_PREFIX = "tok_"

CATEGORIES = [
    {"code": "101", "name": "HERRAMIENTAS"},
    {"code": "102", "name": "Ferretería & Tornillería"},
    {"code": "103", "name": "PINTURAS"},
    {"code": "104", "name": "Electricidad"},
]

_doc_entries = itertools.count(1000)
received_orders: List[dict] = []


class OrderLineIn(BaseModel):
    itemCode: str
    quantity: int = Field(..., gt=0)
    priceList: float
    priceAfterVAT: float
    taxCode: str


class OrderIn(BaseModel):
    """
    Sales order as sent by the sales order service.

    Attributes:
        cardCode (str): Business partner code of the customer.
        docDate (str): Posting date, YYYY-MM-DD.
        docDueDate (str): Due date, YYYY-MM-DD.
        comments (str): Free-text remarks of the agent.
        lines (List[OrderLineIn]): Document lines.
    """
    cardCode: str
    docDate: str
    docDueDate: str
    comments: str = ""
    lines: List[OrderLineIn]


def _check_token(authorization: Optional[str]):
    if not authorization or not authorization.startswith(f"Bearer {VALID_TOKEN_PREFIX}"):
        raise HTTPException(status_code=401, detail={"message": "Token inválido o expirado."})


@app.get("/items/categories")
def list_categories(authorization: Optional[str] = Header(None)):
    _check_token(authorization)
    return CATEGORIES


@app.post("/orders", status_code=201)
def create_order(order: OrderIn, authorization: Optional[str] = Header(None)):
    """
    Creates a sales order.

    The outcome is selected by the `cardCode` prefix:
        - "C_REJECT_" → 400 with a business message
        - "C_ERROR_"  → 500
        - "C_SLOW_"   → responds after a delay
        - anything else → 201 with a new docEntry

    Returns:
        dict: {"docEntry": int} on success.
    """
    _check_token(authorization)
    log.info(f"[OMS] Order for {order.cardCode} with {len(order.lines)} lines ({order.docDate}).")

    if order.cardCode.startswith("C_REJECT_"):
        log.warning(f"[OMS] Order for {order.cardCode} rejected.")
        return JSONResponse(status_code=400, content={"message": "Cliente bloqueado por crédito."})

    if order.cardCode.startswith("C_ERROR_"):
        log.error(f"[OMS] Internal error for {order.cardCode}.")
        return JSONResponse(status_code=500, content={"message": "Error interno de SAP."})

    if order.cardCode.startswith("C_SLOW_"):
        time.sleep(3)

    doc_entry = next(_doc_entries)
    received_orders.append({"docEntry": doc_entry, **order.model_dump()})
    log.info(f"[OMS] Order for {order.cardCode} created (DocEntry {doc_entry}).")
    return {"docEntry": doc_entry}


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(level=logging.INFO)
    uvicorn.run(app, host="0.0.0.0", port=8002)
