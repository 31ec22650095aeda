"""
Unit tests for marketplace event payloads.
"""

import uuid

from collabotree.events.marketplaceEvents import (
    emit_contract_paid,
    emit_contract_settled,
    emit_contract_signed,
    emit_dispute_status_changed,
    emit_hire_created,
    emit_order_status_changed,
)


class TestEventPayloads:

    def test_hire_created(self):
        hire_id, buyer_id, service_id = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()
        event = emit_hire_created(hire_id, buyer_id, service_id, 2500)
        assert event["event_type"] == "hire.created"
        assert event["entity_id"] == str(hire_id)
        assert event["actor_id"] == str(buyer_id)
        assert event["data"] == {"service_id": str(service_id), "price_cents": 2500}
        assert event["timestamp"]

    def test_signature_event_depends_on_activation(self):
        contract_id, signer = uuid.uuid4(), uuid.uuid4()
        assert emit_contract_signed(contract_id, signer, False)["event_type"] == "contract.signed"
        assert emit_contract_signed(contract_id, signer, True)["event_type"] == "contract.activated"

    def test_contract_paid_carries_reference(self):
        event = emit_contract_paid(uuid.uuid4(), uuid.uuid4(), "sim_abc", 10000)
        assert event["event_type"] == "contract.paid"
        assert "sim_abc" in event["data"].values()

    def test_system_transition_has_no_actor(self):
        event = emit_order_status_changed(uuid.uuid4(), "PENDING", "PAID")
        assert event["actor_id"] is None

    def test_contract_settled(self):
        admin_id = uuid.uuid4()
        event = emit_contract_settled(uuid.uuid4(), admin_id, "CANCELLED", "REFUNDED")
        assert event["event_type"] == "contract.settled"
        assert event["actor_id"] == str(admin_id)
        assert event["data"] == {"status": "CANCELLED", "payment_status": "REFUNDED"}

    def test_dispute_review_has_no_outcome(self):
        event = emit_dispute_status_changed(uuid.uuid4(), "OPEN", "UNDER_REVIEW", uuid.uuid4())
        assert event["event_type"] == "dispute.status_changed"
        assert event["data"]["order_outcome"] is None
