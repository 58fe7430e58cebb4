# tests/services/test_crm_service.py
import pytest

from chatflow.core.collaborators import FunnelService, HandoffService, TagService
from chatflow.services.crm_service import InMemoryCRMService


@pytest.mark.unit
class TestInMemoryCRMService:

    def test_satisfies_collaborator_protocols(self, crm):
        assert isinstance(crm, TagService)
        assert isinstance(crm, FunnelService)
        assert isinstance(crm, HandoffService)

    async def test_tags_are_unique(self, crm):
        await crm.add_tag("vip")
        await crm.add_tag("vip")
        await crm.remove_tag("lead")

        assert crm.tags == ["vip"]
        assert [op.operation for op in crm.history] == ["add_tag", "add_tag", "remove_tag"]

    async def test_move_and_transfer(self, crm):
        await crm.move_stage("vendas", None)
        await crm.transfer_to_human("immediate")

        assert crm.snapshot() == {
            "tags": [],
            "funnel_id": "vendas",
            "stage_id": None,
            "handoffs": ["immediate"],
            "operations": 2,
        }

    async def test_reset(self):
        crm = InMemoryCRMService()
        await crm.add_tag("vip")
        await crm.move_stage("vendas", "s1")

        crm.reset()

        assert crm.snapshot()["operations"] == 0
        assert crm.tags == []
        assert crm.funnel_id is None
