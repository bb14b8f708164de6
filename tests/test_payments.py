"""
Tests for payment reconciliation and M-Pesa settlement.
"""

from decimal import Decimal

import pytest

from hotel_booking_platform.models.booking import BookingStatus
from hotel_booking_platform.models.payment import PaymentMethod, PaymentStatus
from hotel_booking_platform.schemas.payment import MpesaStkCallback
from hotel_booking_platform.services.activity_service import ActivityService, decode_details
from hotel_booking_platform.services.booking_service import BookingService
from hotel_booking_platform.services.mpesa_service import MpesaClient
from hotel_booking_platform.services.payment_service import PaymentService
from hotel_booking_platform.utils.exceptions import BookingStateError, OverpaymentError, ValidationError

from .conftest import NOW
from .test_mpesa import FakeDaraja, mpesa_settings


def apply(booking_id, amount, method=PaymentMethod.CASH, **kwargs):
    return lambda s: PaymentService(s).apply_payment(booking_id, Decimal(amount), method, now=NOW, **kwargs)


async def reload(in_session, booking_id):
    return await in_session(lambda s: BookingService(s).get_booking(booking_id))


def stk_callback(checkout_id, result_code=0, receipt="QKJ7A1B2C3", amount=6000):
    body = {
        "MerchantRequestID": "29115-34620561-1",
        "CheckoutRequestID": checkout_id,
        "ResultCode": result_code,
        "ResultDesc": "The service request is processed successfully." if result_code == 0
        else "Request cancelled by user",
    }
    if result_code == 0:
        body["CallbackMetadata"] = {
            "Item": [
                {"Name": "Amount", "Value": amount},
                {"Name": "MpesaReceiptNumber", "Value": receipt},
                {"Name": "PhoneNumber", "Value": 254712345678},
            ]
        }
    return MpesaStkCallback(**body)


async def test_partial_payment_keeps_booking_pending(rooms, make_booking, in_session):
    booking = await make_booking([rooms[0]])

    result = await in_session(apply(booking.id, "4000", PaymentMethod.CREDIT_CARD))

    assert result.remaining_balance == Decimal("2000.00")
    assert result.booking.status == BookingStatus.PENDING
    assert result.booking.payment_method == PaymentMethod.CREDIT_CARD
    assert result.payment.status == PaymentStatus.COMPLETED


async def test_paying_the_balance_confirms(rooms, make_booking, in_session):
    booking = await make_booking([rooms[0]])
    await in_session(apply(booking.id, "4000"))

    result = await in_session(apply(booking.id, "2000", PaymentMethod.BANK_TRANSFER))

    assert result.booking.status == BookingStatus.CONFIRMED
    assert result.booking.paid_amount == Decimal("6000.00")
    assert result.remaining_balance == Decimal("0.00")
    assert result.booking.payment_method == PaymentMethod.BANK_TRANSFER


async def test_overpayment_changes_nothing(rooms, make_booking, in_session):
    booking = await make_booking([rooms[0]])
    await in_session(apply(booking.id, "4000"))

    with pytest.raises(OverpaymentError) as exc_info:
        await in_session(apply(booking.id, "2500"))

    assert exc_info.value.details["remaining_balance"] == 2000.0
    after = await reload(in_session, booking.id)
    assert after.paid_amount == Decimal("4000.00")
    assert len(after.payments) == 1


async def test_cancelled_booking_takes_no_payment(rooms, make_booking, in_session):
    booking = await make_booking([rooms[0]])
    await in_session(lambda s: BookingService(s).cancel_booking(booking.id, now=NOW))

    with pytest.raises(BookingStateError):
        await in_session(apply(booking.id, "100"))


async def test_non_positive_amount_is_rejected(rooms, make_booking, in_session):
    booking = await make_booking([rooms[0]])

    with pytest.raises(ValidationError):
        await in_session(apply(booking.id, "0"))


async def test_list_payments_sums_matches(rooms, make_booking, in_session):
    booking = await make_booking([rooms[0]])
    await in_session(apply(booking.id, "1000"))
    await in_session(apply(booking.id, "1500", PaymentMethod.MPESA))

    payments, total, total_amount = await in_session(
        lambda s: PaymentService(s).list_payments(booking_id=booking.id)
    )
    assert total == 2
    assert total_amount == Decimal("2500")

    _, mpesa_total, _ = await in_session(
        lambda s: PaymentService(s).list_payments(method=PaymentMethod.MPESA)
    )
    assert mpesa_total == 1


class TestMpesaSettlement:
    @pytest.fixture
    async def pending_push(self, rooms, make_booking, in_session):
        booking = await make_booking([rooms[0]])
        daraja = FakeDaraja()
        async with daraja.client() as http_client:
            client = MpesaClient(settings=mpesa_settings(), http_client=http_client)
            payment, _ = await in_session(
                lambda s: PaymentService(s, client).initiate_mpesa_payment(
                    booking.id, "0712345678", Decimal("6000"), now=NOW
                )
            )
        return booking, payment

    async def test_push_is_recorded_pending(self, pending_push, in_session):
        booking, payment = pending_push

        assert payment.status == PaymentStatus.PENDING
        assert payment.method == PaymentMethod.MPESA
        assert payment.phone_number == "254712345678"
        assert (await reload(in_session, booking.id)).paid_amount == Decimal("0.00")

    async def test_successful_callback_credits_booking(self, pending_push, in_session):
        booking, payment = pending_push

        settled = await in_session(
            lambda s: PaymentService(s).handle_mpesa_callback(stk_callback(payment.checkout_request_id), now=NOW)
        )

        assert settled.status == PaymentStatus.COMPLETED
        assert settled.transaction_id == "QKJ7A1B2C3"
        after = await reload(in_session, booking.id)
        assert after.paid_amount == Decimal("6000.00")
        assert after.status == BookingStatus.CONFIRMED

    async def test_repeated_callback_is_ignored(self, pending_push, in_session):
        booking, payment = pending_push
        callback = stk_callback(payment.checkout_request_id)

        await in_session(lambda s: PaymentService(s).handle_mpesa_callback(callback, now=NOW))
        repeat = await in_session(lambda s: PaymentService(s).handle_mpesa_callback(callback, now=NOW))

        assert repeat is None
        assert (await reload(in_session, booking.id)).paid_amount == Decimal("6000.00")

    async def test_failed_callback_marks_payment_failed(self, pending_push, in_session):
        booking, payment = pending_push

        failed = await in_session(
            lambda s: PaymentService(s).handle_mpesa_callback(
                stk_callback(payment.checkout_request_id, result_code=1032), now=NOW
            )
        )

        assert failed.status == PaymentStatus.FAILED
        after = await reload(in_session, booking.id)
        assert after.paid_amount == Decimal("0.00")
        assert after.status == BookingStatus.PENDING

    async def test_callback_that_would_overpay_is_not_credited(self, pending_push, in_session):
        booking, payment = pending_push
        await in_session(apply(booking.id, "1000"))

        result = await in_session(
            lambda s: PaymentService(s).handle_mpesa_callback(stk_callback(payment.checkout_request_id), now=NOW)
        )

        assert result.status == PaymentStatus.FAILED
        assert result.transaction_id == "QKJ7A1B2C3"
        assert result.notes.startswith("Received 6000 but not applied")
        assert (await reload(in_session, booking.id)).paid_amount == Decimal("1000.00")

        entries, total = await in_session(
            lambda s: ActivityService(s).list_entries(action="MPESA_PAYMENT_UNAPPLIED")
        )
        assert total == 1
        assert decode_details(entries[0])["transaction_id"] == "QKJ7A1B2C3"

    async def test_unknown_checkout_id_is_ignored(self, pending_push, in_session):
        result = await in_session(
            lambda s: PaymentService(s).handle_mpesa_callback(stk_callback("ws_CO_unknown"), now=NOW)
        )
        assert result is None
