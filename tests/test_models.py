"""Tests for models, the order state graph and tagged order ids."""
import pytest
from picpro.models import GenerationJob, Order, OrderId, OrderStatus
from picpro.services.pricing import ALL_STYLES, TIERS


def test_status_graph_predecessors():
    assert OrderStatus.predecessors(OrderStatus.PAID) == {OrderStatus.PENDING}
    assert OrderStatus.predecessors(OrderStatus.COMPLETED) == {OrderStatus.GENERATING}
    assert OrderStatus.predecessors(OrderStatus.FAILED) == {
        OrderStatus.PAID,
        OrderStatus.TRAINING,
        OrderStatus.GENERATING,
    }
    assert OrderStatus.predecessors(OrderStatus.PENDING) == set()


def test_status_graph_never_regresses():
    order = list(OrderStatus.ALL[:5])
    for i, current in enumerate(order):
        for earlier in order[:i]:
            assert not OrderStatus.can_transition(current, earlier)
    for terminal in OrderStatus.TERMINAL:
        assert OrderStatus.TRANSITIONS[terminal] == set()
    assert not OrderStatus.can_transition(OrderStatus.TRAINING, OrderStatus.COMPLETED)


def test_unknown_status_rejected():
    with pytest.raises(ValueError):
        OrderStatus.predecessors("shipped")


def test_order_id_parsing():
    real = OrderId.parse("1B4E28BA-2FA1-11D2-883F-0016D3CCA427")
    assert not real.ephemeral
    assert real.value == "1b4e28ba-2fa1-11d2-883f-0016d3cca427"

    demo = OrderId.parse("demo_order_abc")
    assert demo.ephemeral
    assert str(demo) == "demo_order_abc"

    assert OrderId.new_ephemeral().ephemeral
    assert OrderId.parse(real) is real


@pytest.mark.parametrize("raw", ["", None, "   ", "not-a-uuid", "temp_123"])
def test_order_id_rejects_malformed(raw):
    with pytest.raises(ValueError):
        OrderId.parse(raw)


def test_failed_order_shows_generic_message(db):
    order = Order(email="a@b.co", tier="starter", price_cents=2900, status=OrderStatus.FAILED)
    db.session.add(order)
    db.session.commit()

    data = order.to_dict()
    assert data["status"] == "failed"
    assert "contact support" in data["message"]
    assert data["price"] == 29.0


def test_generation_job_hides_error(db, make_order):
    order = make_order(status=OrderStatus.GENERATING)
    job = GenerationJob(
        order_id=order.id,
        style="corporate",
        prediction_id="p-1",
        status=GenerationJob.FAILED,
        error="CUDA out of memory",
    )
    db.session.add(job)
    db.session.commit()

    assert job.is_terminal
    assert "error" not in job.to_dict()
    assert "CUDA" not in str(job.to_dict())


def test_tiers():
    assert TIERS["starter"].headshot_count == 40
    assert len(TIERS["starter"].styles) == 5
    assert TIERS["professional"].headshot_count == 100
    assert TIERS["executive"].headshot_count == 200
    assert TIERS["executive"].styles == ALL_STYLES
    assert TIERS["professional"].price_config_key == "STRIPE_PRICE_PROFESSIONAL"
