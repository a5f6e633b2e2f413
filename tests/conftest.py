from decimal import Decimal

import pytest

from sales_order_service.models import AuthContext, CartLineItem, PriceTier, SelectedCustomer
from sales_order_service.storage import MemoryStore


@pytest.fixture
def anyio_backend():
    # asyncio only, the debounce timers are asyncio TimerHandles
    return "asyncio"


@pytest.fixture
def make_item():
    def _make(code="SKU1", base="100", tiers=None, quantity=1, tax="ISV15"):
        return CartLineItem(
            itemCode=code,
            itemName=f"Item {code}",
            basePrice=Decimal(base),
            taxCode=tax,
            tiers=tiers or [],
            quantity=quantity,
        )
    return _make


@pytest.fixture
def tiered_item(make_item):
    return make_item(
        tiers=[
            PriceTier(minQty=5, price=Decimal("90")),
            PriceTier(minQty=10, price=Decimal("80")),
        ]
    )


@pytest.fixture
def customer():
    return SelectedCustomer(cardCode="C0001", cardName="Ferretería El Martillo", priceListNum=3)


@pytest.fixture
def auth():
    return AuthContext(token="tok_test", user="agent1")


@pytest.fixture
def memory_store():
    return MemoryStore()


class FakeOrderClient:
    """Stands in for OrderClient; records payloads and replays a scripted outcome."""

    def __init__(self, auth, response=None, error=None, gate=None):
        self.auth = auth
        self.response = response if response is not None else {"docEntry": 4711}
        self.error = error
        self.gate = gate
        self.payloads = []

    async def create_order(self, payload):
        self.payloads.append(payload)
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.response

    async def aclose(self):
        pass


@pytest.fixture
def fake_order_client(auth):
    return FakeOrderClient(auth)


@pytest.fixture
def order_client_cls():
    return FakeOrderClient
