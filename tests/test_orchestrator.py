"""
Tests for application wiring.
"""

from decimal import Decimal

import pytest

from fintrack.ledger import StaticIdentityProvider
from fintrack.models.ledger import Identity, LedgerStatus, PaymentRequest
from fintrack.orchestrator import create_app_components
from fintrack.services.storage import PROFILES, InMemoryRecordBackend


class TestCreateAppComponents:
    """End-to-end wiring on the in-memory backend."""

    def test_without_storage_uses_memory(self):
        components = create_app_components(StaticIdentityProvider(), use_storage=False)

        assert isinstance(components.backend, InMemoryRecordBackend)
        assert components.sheets_client is None
        assert components.ledger is None
        assert components.savings_planner() is None

    @pytest.mark.asyncio
    async def test_sign_in_to_payment(self):
        provider = StaticIdentityProvider()
        components = create_app_components(provider, use_storage=False)
        await components.backend.insert_row(PROFILES, {"user_id": "u1", "tenant_id": "t1"})
        await components.bridge.start()

        await provider.sign_in(Identity(user_id="u1"))
        result = await components.ledger.process_payment(
            PaymentRequest(amount=Decimal("99"), description="tea", category="Food", merchant="Cafe")
        )

        assert components.ledger.status == LedgerStatus.READY
        assert result.ok
        assert components.ledger.total_spent() == Decimal("99")
        assert components.reminder_book().scope.tenant_id == "t1"
        assert components.reading_log() is not None

        await provider.sign_out()
        assert components.ledger is None
