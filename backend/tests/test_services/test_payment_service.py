"""
Unit tests for PaymentService

Paystack is replaced by an AsyncMock connector (or a real connector with a
test key for signature checks); repositories are MagicMocks.
"""
import asyncio
import json
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from marketplace.connectors.paystack_connector import PaystackConnector, PaystackError
from marketplace.core.config import settings
from marketplace.core.exceptions import AuthenticationError, ConflictError, NotFoundError, UpstreamError, ValidationError
from marketplace.domain.payment import Payment, PaymentInitRequest, PaymentVerifyRequest
from marketplace.services.payment_service import (
    FINALIZE_EVENT,
    PaymentService,
    build_split_subaccounts,
    callback_url,
    is_fresh,
    supplier_split_amounts,
)

SECRET = "sk_test_webhook"


def _payment(status="PENDING", channel="paystack", created_at=None, **fields):
    data = {
        "id": "pay-1",
        "order_id": "order-1",
        "reference": "7K3M9QXZ",
        "amount": Decimal("3186.00"),
        "status": status,
        "channel": channel,
        "created_at": created_at or datetime.now(timezone.utc),
    }
    data.update(fields)
    return Payment(**data)


@pytest.fixture
def deps(sample_order):
    payment_repo = MagicMock()
    payment_repo.paid_for_order.return_value = None
    payment_repo.find_pending_for_order.return_value = []
    payment_repo.reference_exists.return_value = False
    payment_repo.cancel_pending.return_value = 0
    payment_repo.create.side_effect = lambda order_id, reference, amount, channel, provider=None: _payment(
        reference=reference, channel=channel, amount=amount
    )
    order_repo = MagicMock()
    order_repo.find_by_id.return_value = sample_order
    supplier_repo = MagicMock()
    supplier_repo.subaccount_codes.return_value = {}
    fulfillment = MagicMock()
    notifications = MagicMock()
    connector = MagicMock()
    connector.initialize_transaction = AsyncMock(return_value={
        "authorization_url": "https://checkout.paystack.com/abc",
        "access_code": "abc",
    })
    connector.verify_transaction = AsyncMock()
    connector.create_split = AsyncMock(return_value="SPL_123")
    return {
        "payment_repo": payment_repo,
        "order_repo": order_repo,
        "supplier_repo": supplier_repo,
        "fulfillment": fulfillment,
        "notifications": notifications,
        "connector": connector,
    }


class TestHelpers:

    def test_supplier_split_amounts(self, sample_order):
        assert supplier_split_amounts(sample_order.items) == {
            "sup-1": Decimal("2400.00"),
            "sup-2": Decimal("600.00"),
        }

    def test_split_only_for_suppliers_with_subaccounts(self):
        amounts = {"sup-1": Decimal("2400.00"), "sup-2": Decimal("600.00")}

        subaccounts = build_split_subaccounts(amounts, {"sup-1": "ACCT_1"})

        assert subaccounts == [{"subaccount": "ACCT_1", "share": 240000}]

    def test_is_fresh(self):
        now = datetime.now(timezone.utc)
        assert is_fresh(_payment(created_at=now - timedelta(minutes=5)), now)
        assert not is_fresh(_payment(created_at=now - timedelta(minutes=settings.PAYMENT_PENDING_TTL_MIN + 1)), now)

    def test_callback_url(self):
        url = callback_url("order-1", "7K3M9QXZ")
        assert url.startswith(settings.APP_URL.rstrip("/") + "/payment-callback?")
        assert "orderId=order-1" in url
        assert "reference=7K3M9QXZ" in url
        assert "gateway=paystack" in url


class TestInitPayment:

    def test_foreign_order_is_not_found(self, deps, other_shopper):
        service = PaymentService(**deps)

        with pytest.raises(NotFoundError):
            asyncio.run(service.init_payment(other_shopper, PaymentInitRequest(order_id="order-1")))

    def test_paid_order_conflicts(self, deps, shopper, sample_order):
        sample_order.status = "PAID"
        service = PaymentService(**deps)

        with pytest.raises(ConflictError, match="already paid"):
            asyncio.run(service.init_payment(shopper, PaymentInitRequest(order_id="order-1")))

    def test_resumes_fresh_pending_attempt(self, deps, shopper):
        deps["payment_repo"].find_pending_for_order.return_value = [_payment(init_payload={
            "authorization_url": "https://checkout.paystack.com/old",
            "access_code": "old",
        })]
        service = PaymentService(**deps)

        result = asyncio.run(service.init_payment(shopper, PaymentInitRequest(order_id="order-1")))

        assert result["authorization_url"] == "https://checkout.paystack.com/old"
        assert result["reference"] == "7K3M9QXZ"
        deps["payment_repo"].create.assert_not_called()
        deps["connector"].initialize_transaction.assert_not_called()

    def test_paystack_checkout(self, deps, shopper):
        service = PaymentService(**deps)

        result = asyncio.run(service.init_payment(shopper, PaymentInitRequest(order_id="order-1")))

        assert result["mode"] == "paystack"
        assert result["authorization_url"] == "https://checkout.paystack.com/abc"
        kwargs = deps["connector"].initialize_transaction.call_args.kwargs
        assert kwargs["amount_kobo"] == 318600
        assert kwargs["email"] == "ada@example.com"
        assert kwargs["split_code"] is None
        deps["payment_repo"].cancel_pending.assert_called_once_with("order-1")
        deps["payment_repo"].save_init_payload.assert_called_once()

    def test_split_used_when_suppliers_have_subaccounts(self, deps, shopper):
        deps["supplier_repo"].subaccount_codes.return_value = {"sup-1": "ACCT_1", "sup-2": "ACCT_2"}
        service = PaymentService(**deps)

        asyncio.run(service.init_payment(shopper, PaymentInitRequest(order_id="order-1")))

        assert deps["connector"].initialize_transaction.call_args.kwargs["split_code"] == "SPL_123"

    def test_split_failure_still_initializes(self, deps, shopper):
        deps["supplier_repo"].subaccount_codes.return_value = {"sup-1": "ACCT_1"}
        deps["connector"].create_split.side_effect = PaystackError("split rejected")
        service = PaymentService(**deps)

        asyncio.run(service.init_payment(shopper, PaymentInitRequest(order_id="order-1")))

        events = [c.args[1] for c in deps["payment_repo"].log_event.call_args_list]
        assert "SPLIT_FAILED" in events
        assert deps["connector"].initialize_transaction.call_args.kwargs["split_code"] is None

    def test_paystack_failure_marks_attempt_failed(self, deps, shopper):
        deps["connector"].initialize_transaction.side_effect = PaystackError("Invalid key")
        service = PaymentService(**deps)

        with pytest.raises(UpstreamError):
            asyncio.run(service.init_payment(shopper, PaymentInitRequest(order_id="order-1")))

        assert deps["payment_repo"].update_status.call_args.args[1] == "FAILED"

    def test_trial_mode(self, deps, shopper):
        service = PaymentService(**deps)

        with patch.object(settings, "PAYMENTS_TRIAL_MODE", True):
            result = asyncio.run(service.init_payment(shopper, PaymentInitRequest(order_id="order-1")))

        assert result["mode"] == "trial"
        assert result["amount"] == 3186.0
        deps["connector"].initialize_transaction.assert_not_called()

    def test_bank_transfer_channel(self, deps, shopper):
        service = PaymentService(**deps)

        with patch.object(settings, "INLINE_BANK_NAME", "Wema Bank"):
            result = asyncio.run(service.init_payment(
                shopper, PaymentInitRequest(order_id="order-1", channel="bank_transfer")
            ))

        assert result["mode"] == "bank_transfer"
        assert result["bank"]["bankName"] == "Wema Bank"


class TestVerifyPayment:

    def test_requires_order_and_reference(self, deps, shopper):
        service = PaymentService(**deps)

        with pytest.raises(ValidationError):
            asyncio.run(service.verify_payment(shopper, PaymentVerifyRequest(order_id="order-1")))

    def test_already_paid(self, deps, shopper):
        deps["payment_repo"].find_by_reference.return_value = _payment(status="PAID")
        service = PaymentService(**deps)

        result = asyncio.run(service.verify_payment(
            shopper, PaymentVerifyRequest(order_id="order-1", reference="7K3M9QXZ")
        ))

        assert result == {"ok": True, "status": "PAID"}

    def test_success_marks_paid_and_finalizes(self, deps, shopper):
        deps["payment_repo"].find_by_reference.return_value = _payment()
        deps["connector"].verify_transaction.return_value = {
            "status": "success", "reference": "7K3M9QXZ", "amount": 318600, "fees": 5779,
        }
        service = PaymentService(**deps)
        service.finalize_paid_flow = MagicMock(return_value=True)

        result = asyncio.run(service.verify_payment(
            shopper, PaymentVerifyRequest(order_id="order-1", reference="7K3M9QXZ")
        ))

        assert result == {"ok": True, "status": "PAID"}
        args = deps["payment_repo"].mark_paid.call_args.args
        assert args[1:3] == (Decimal("3186.00"), Decimal("57.79"))
        service.finalize_paid_flow.assert_called_once_with("7K3M9QXZ")

    def test_missing_fees_are_estimated(self, deps, shopper):
        deps["payment_repo"].find_by_reference.return_value = _payment()
        deps["connector"].verify_transaction.return_value = {"status": "success", "amount": 318600}
        service = PaymentService(**deps)
        service.finalize_paid_flow = MagicMock(return_value=True)

        asyncio.run(service.verify_payment(
            shopper, PaymentVerifyRequest(order_id="order-1", reference="7K3M9QXZ")
        ))

        assert deps["payment_repo"].mark_paid.call_args.args[2] == Decimal("147.79")

    def test_reference_mismatch(self, deps, shopper):
        deps["payment_repo"].find_by_reference.return_value = _payment()
        deps["connector"].verify_transaction.return_value = {"status": "success", "reference": "OTHER123"}
        service = PaymentService(**deps)

        with pytest.raises(ValidationError, match="Reference mismatch"):
            asyncio.run(service.verify_payment(
                shopper, PaymentVerifyRequest(order_id="order-1", reference="7K3M9QXZ")
            ))

    def test_failed_charge(self, deps, shopper):
        deps["payment_repo"].find_by_reference.return_value = _payment()
        deps["connector"].verify_transaction.return_value = {"status": "failed"}
        service = PaymentService(**deps)

        result = asyncio.run(service.verify_payment(
            shopper, PaymentVerifyRequest(order_id="order-1", reference="7K3M9QXZ")
        ))

        assert result == {"ok": False, "status": "FAILED"}

    def test_provider_error_stays_pending(self, deps, shopper):
        deps["payment_repo"].find_by_reference.return_value = _payment()
        deps["connector"].verify_transaction.side_effect = PaystackError("timeout")
        service = PaymentService(**deps)

        result = asyncio.run(service.verify_payment(
            shopper, PaymentVerifyRequest(order_id="order-1", reference="7K3M9QXZ")
        ))

        assert result["status"] == "PENDING"
        assert deps["payment_repo"].log_event.call_args.args[1] == "VERIFY_ERROR"

    def test_manual_approval_for_bank_transfer(self, deps, shopper):
        deps["payment_repo"].find_by_reference.return_value = _payment(channel="bank_transfer")
        service = PaymentService(**deps)

        with patch.object(settings, "PAYMENTS_REQUIRE_MANUAL_APPROVAL", True):
            result = asyncio.run(service.verify_payment(
                shopper, PaymentVerifyRequest(order_id="order-1", reference="7K3M9QXZ")
            ))

        assert result["message"] == "Awaiting manual approval"
        deps["payment_repo"].mark_paid.assert_not_called()


class TestWebhook:

    def _service(self, deps):
        deps = dict(deps, connector=PaystackConnector(secret_key=SECRET))
        return PaymentService(**deps)

    def test_bad_signature(self, deps):
        service = self._service(deps)

        with pytest.raises(AuthenticationError):
            service.handle_webhook(b'{"event": "charge.success"}', "deadbeef")

    def test_non_ascii_signature_is_rejected(self, deps):
        service = self._service(deps)

        with pytest.raises(AuthenticationError, match="bad sig"):
            service.handle_webhook(b"{}", "\u00e9" * 128)

    def test_missing_secret_is_rejected(self, deps):
        service = PaymentService(**dict(deps, connector=None))

        with patch.object(settings, "PAYSTACK_SECRET_KEY", ""):
            with pytest.raises(AuthenticationError, match="bad sig"):
                service.handle_webhook(b"{}", "deadbeef")

    def test_charge_success_confirms_payment(self, deps):
        deps["payment_repo"].find_by_reference.return_value = _payment()
        service = self._service(deps)
        service.finalize_paid_flow = MagicMock(return_value=True)
        body = json.dumps({
            "event": "charge.success",
            "data": {"reference": "7K3M9QXZ", "amount": 318600, "fees": 5779},
        }).encode()

        result = service.handle_webhook(body, PaystackConnector.compute_signature(body, SECRET))

        assert result == {"received": True}
        deps["payment_repo"].mark_paid.assert_called_once()
        service.finalize_paid_flow.assert_called_once_with("7K3M9QXZ")

    def test_confirmation_failure_is_still_acknowledged(self, deps):
        deps["payment_repo"].find_by_reference.return_value = _payment()
        deps["payment_repo"].mark_paid.side_effect = RuntimeError("db down")
        service = self._service(deps)
        body = json.dumps({"event": "charge.success", "data": {"reference": "7K3M9QXZ"}}).encode()

        result = service.handle_webhook(body, PaystackConnector.compute_signature(body, SECRET))

        assert result == {"received": True}

    def test_unknown_reference_is_acknowledged(self, deps):
        deps["payment_repo"].find_by_reference.return_value = None
        service = self._service(deps)
        body = json.dumps({"event": "charge.success", "data": {"reference": "NOPE0000"}}).encode()

        assert service.handle_webhook(body, PaystackConnector.compute_signature(body, SECRET)) == {"received": True}
        deps["payment_repo"].mark_paid.assert_not_called()


class TestFinalizePaidFlow:

    PATCH_TX = 'marketplace.services.payment_service.transaction'

    def test_runs_once(self, deps, fake_transaction):
        deps["payment_repo"].find_by_reference.return_value = _payment(status="PAID")
        deps["payment_repo"].order_has_event.return_value = True
        service = PaymentService(**deps)

        with patch(self.PATCH_TX, fake_transaction):
            assert service.finalize_paid_flow("7K3M9QXZ") is False

        deps["fulfillment"].create_purchase_orders_for_order.assert_not_called()

    def test_unpaid_payment_is_skipped(self, deps, fake_transaction):
        deps["payment_repo"].find_by_reference.return_value = _payment(status="PENDING")
        service = PaymentService(**deps)

        with patch(self.PATCH_TX, fake_transaction):
            assert service.finalize_paid_flow("7K3M9QXZ") is False

    def test_paid_flow(self, deps, fake_transaction, mock_conn):
        payment_repo = deps["payment_repo"]
        payment_repo.find_by_reference.return_value = _payment(status="PAID")
        payment_repo.order_has_event.return_value = False
        payment_repo.paid_for_order.return_value = _payment(status="PAID", fee_amount=Decimal("57.79"))
        service = PaymentService(**deps)

        with patch(self.PATCH_TX, fake_transaction):
            assert service.finalize_paid_flow("7K3M9QXZ") is True

        events = [c.args[1] for c in payment_repo.log_event.call_args_list]
        assert events[0] == FINALIZE_EVENT
        assert "SUPPLIER_NOTIFIED" in events
        assert events[-1] == "PROFIT_COMPUTED"

        payment_repo.cancel_pending.assert_called_once_with("order-1", keep_payment_id="pay-1", conn=mock_conn)
        status_call = deps["order_repo"].update_status.call_args
        assert status_call.args == ("order-1", "AWAITING_FULFILLMENT")
        assert status_call.kwargs["mark_paid"] is True
        deps["fulfillment"].create_purchase_orders_for_order.assert_called_once()
        assert deps["notifications"].notify_suppliers.call_args.args[0] == ["sup-1", "sup-2"]
        assert deps["notifications"].notify_user.call_args.args[:2] == ("user-1", "ORDER_PAID")


class TestQueries:

    def test_status_checks_order_match(self, deps, shopper):
        deps["payment_repo"].find_by_reference.return_value = _payment(order_id="order-2")
        service = PaymentService(**deps)

        with pytest.raises(NotFoundError):
            service.status(shopper, "order-1", "7K3M9QXZ")

    def test_summary(self, deps):
        deps["payment_repo"].total_paid_for_user.return_value = Decimal("1234.5")

        assert PaymentService(**deps).summary("user-1") == {"totalPaid": 1234.5, "currency": "NGN"}
