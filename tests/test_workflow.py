import asyncio
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from sales_order_service.cart import CartStore
from sales_order_service.debounce import DebouncedChannel
from sales_order_service.errors import NetworkError, ServerError, SubmissionInProgressError
from sales_order_service.models import AuthContext
from sales_order_service.workflow import (
    OrderSubmissionPipeline,
    SubmissionState,
    build_order_payload,
    business_date,
)

# 03:30 UTC on Jan 1st is still Dec 31st in Tegucigalpa (UTC-6)
NOW = datetime(2025, 1, 1, 3, 30, tzinfo=timezone.utc)


def test_business_date_uses_business_timezone():
    assert business_date(NOW, "America/Tegucigalpa") == "2024-12-31"
    assert business_date(NOW, "UTC") == "2025-01-01"
    assert business_date(datetime(2025, 1, 1, 3, 30), "America/Tegucigalpa") == "2024-12-31"


def test_payload_carries_list_and_resolved_prices(customer, tiered_item):
    line = tiered_item.model_copy(update={"quantity": 9})
    payload = build_order_payload(customer, [line], "", NOW, "America/Tegucigalpa")

    assert payload.docDate == payload.docDueDate == "2024-12-31"
    assert payload.model_dump(mode="json")["lines"] == [
        {"itemCode": "SKU1", "quantity": 9, "priceList": 100.0, "priceAfterVAT": 90.0, "taxCode": "ISV15"}
    ]


@pytest.fixture
def pipeline_env(customer, fake_order_client):
    cart = CartStore()
    comments = DebouncedChannel(500, name="comments")
    feedback = []
    selected = {"customer": customer}
    pipeline = OrderSubmissionPipeline(
        cart=cart,
        comments=comments,
        client=fake_order_client,
        customer_provider=lambda: selected["customer"],
        feedback=lambda kind, message: feedback.append(kind),
        clock=lambda: NOW,
    )
    return pipeline, cart, comments, feedback, selected


@pytest.mark.anyio
async def test_empty_cart_fails_validation_without_network(pipeline_env, fake_order_client):
    pipeline, _, _, feedback, _ = pipeline_env

    result = await pipeline.submit()

    assert not result.ok
    assert result.reason == "validation"
    assert fake_order_client.payloads == []
    assert feedback == ["error"]
    assert pipeline.state is SubmissionState.IDLE


@pytest.mark.anyio
async def test_missing_customer_fails_validation(pipeline_env, make_item, fake_order_client):
    pipeline, cart, _, _, selected = pipeline_env
    cart.add_or_merge_item(make_item(), 1)
    selected["customer"] = None

    result = await pipeline.submit()

    assert result.reason == "validation"
    assert fake_order_client.payloads == []


@pytest.mark.anyio
async def test_missing_token_fails_without_network(customer, make_item, order_client_cls):
    client = order_client_cls(AuthContext(token=None))
    cart = CartStore()
    cart.add_or_merge_item(make_item(), 1)
    pipeline = OrderSubmissionPipeline(cart, DebouncedChannel(500), client, lambda: customer)

    result = await pipeline.submit()

    assert result.reason == "auth"
    assert client.payloads == []
    assert len(cart) == 1


@pytest.mark.anyio
async def test_success_clears_cart_and_comments_and_records_doc_entry(pipeline_env, tiered_item, fake_order_client):
    pipeline, cart, comments, feedback, _ = pipeline_env
    states = []
    pipeline.on_transition(states.append)
    cart.add_or_merge_item(tiered_item, 10)
    comments.set_raw("Entregar en bodega 2")

    result = await pipeline.submit()

    assert result.ok
    assert result.docEntry == 4711
    assert pipeline.last_doc_entry == 4711
    assert cart.list() == ()
    assert comments.raw == comments.settled == ""
    assert feedback == ["success"]
    assert states == [
        SubmissionState.VALIDATING,
        SubmissionState.SUBMITTING,
        SubmissionState.SUCCEEDED,
        SubmissionState.IDLE,
    ]

    payload = fake_order_client.payloads[0]
    assert payload.cardCode == "C0001"
    assert payload.comments == "Entregar en bodega 2"
    assert payload.docDate == "2024-12-31"
    assert payload.lines[0].priceList == Decimal("100")
    assert payload.lines[0].priceAfterVAT == Decimal("80")


@pytest.mark.anyio
@pytest.mark.parametrize("error, reason", [
    (NetworkError(), "network"),
    (ServerError(404), "server"),
    (ServerError(500, "Error interno de SAP."), "server"),
])
async def test_failure_leaves_cart_and_comments_untouched(pipeline_env, make_item, fake_order_client, error, reason):
    pipeline, cart, comments, feedback, _ = pipeline_env
    fake_order_client.error = error
    cart.add_or_merge_item(make_item(code="A"), 2)
    cart.add_or_merge_item(make_item(code="B"), 1)
    comments.set_raw("urgente")
    before = cart.list()

    result = await pipeline.submit()

    assert not result.ok
    assert result.reason == reason
    assert result.message == error.message
    assert cart.list() == before
    assert comments.settled == "urgente"
    assert pipeline.last_doc_entry is None
    assert feedback == ["error"]


@pytest.mark.anyio
async def test_route_not_found_message(pipeline_env, make_item, fake_order_client):
    pipeline, cart, _, _, _ = pipeline_env
    fake_order_client.error = ServerError(404)
    cart.add_or_merge_item(make_item(), 1)

    result = await pipeline.submit()

    assert result.statusCode == 404
    assert "404" in result.message


@pytest.mark.anyio
async def test_concurrent_submit_is_rejected(pipeline_env, make_item, fake_order_client):
    pipeline, cart, _, _, _ = pipeline_env
    fake_order_client.gate = asyncio.Event()
    cart.add_or_merge_item(make_item(), 1)

    first = asyncio.create_task(pipeline.submit())
    await asyncio.sleep(0)
    assert pipeline.state is SubmissionState.SUBMITTING

    with pytest.raises(SubmissionInProgressError):
        await pipeline.submit()

    fake_order_client.gate.set()
    result = await first
    assert result.ok
    assert len(fake_order_client.payloads) == 1


@pytest.mark.anyio
async def test_payload_is_snapshotted_before_network_call(pipeline_env, make_item, fake_order_client):
    pipeline, cart, _, _, _ = pipeline_env
    fake_order_client.gate = asyncio.Event()
    fake_order_client.error = NetworkError()
    cart.add_or_merge_item(make_item(code="A"), 2)

    task = asyncio.create_task(pipeline.submit())
    await asyncio.sleep(0)
    cart.update_quantity("A", 50)
    fake_order_client.gate.set()
    await task

    assert fake_order_client.payloads[0].lines[0].quantity == 2
    assert cart.get("A").quantity == 50


@pytest.mark.anyio
async def test_cancelled_submit_returns_to_idle_and_can_be_retried(pipeline_env, make_item, fake_order_client):
    pipeline, cart, comments, _, _ = pipeline_env
    fake_order_client.gate = asyncio.Event()
    cart.add_or_merge_item(make_item(), 3)
    comments.set_raw("sin cambios")

    with pytest.raises(asyncio.TimeoutError):
        await asyncio.wait_for(pipeline.submit(), timeout=0.05)

    assert pipeline.state is SubmissionState.IDLE
    assert not pipeline.last_result.ok
    assert cart.get("SKU1").quantity == 3
    assert comments.settled == "sin cambios"

    fake_order_client.gate = None
    result = await pipeline.submit()

    assert result.ok
    assert cart.list() == ()
    assert len(fake_order_client.payloads) == 2


@pytest.mark.anyio
async def test_failing_transition_listener_does_not_wedge_the_pipeline(pipeline_env, make_item, fake_order_client):
    pipeline, cart, _, _, _ = pipeline_env
    cart.add_or_merge_item(make_item(), 1)
    broken = {"on": True}

    def listener(state):
        if broken["on"] and state is SubmissionState.VALIDATING:
            raise RuntimeError("listener failed")

    pipeline.on_transition(listener)

    with pytest.raises(RuntimeError):
        await pipeline.submit()
    assert pipeline.state is SubmissionState.IDLE

    broken["on"] = False
    result = await pipeline.submit()
    assert result.ok


@pytest.mark.anyio
async def test_created_order_without_doc_entry_still_succeeds(pipeline_env, make_item, fake_order_client):
    pipeline, cart, _, feedback, _ = pipeline_env
    fake_order_client.response = {}
    cart.add_or_merge_item(make_item(), 1)

    result = await pipeline.submit()

    assert result.ok
    assert result.docEntry is None
    assert pipeline.last_doc_entry is None
    assert cart.list() == ()
    assert feedback == ["success"]
