"""
Tests for booking creation, including the double-booking race, and the
booking lifecycle.
"""

import asyncio
from datetime import date
from decimal import Decimal

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from residency.core.exceptions import InvalidReference, RoomAlreadyBooked
from residency.models import AcademicTerm, Booking, BookingPackage, Payment, Room
from residency.models.booking import PaymentMethod
from residency.services import booking_ledger
from residency.services.audit_log import AuditAction
from residency.services.booking_ledger import BookingReceipt

from tests.conftest import (
    TestSessionLocal,
    _make_user,
    audit_count,
    booking_payload,
    booking_status,
    count_rows,
    headers_for,
    payment_status,
    testing_engine,
)


async def _create(db, student, room, term, package, method=PaymentMethod.ONLINE) -> BookingReceipt:
    return await booking_ledger.create_booking(
        db,
        student_id=student.id,
        room_id=room.id,
        term_id=term.id,
        package_id=package.id,
        payment_method=method,
    )


# ---------------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_create_online_booking(client: AsyncClient, db_session, student_headers, room, term, package):
    """Online booking starts pending with a server-computed price."""
    response = await client.post(
        "/api/v1/bookings/",
        json=booking_payload(room, term, package),
        headers=student_headers,
    )
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "Pending Payment"
    assert Decimal(data["totalPrice"]) == Decimal("1995.00")
    assert data["startDate"] == "2025-09-01"
    assert data["endDate"] == "2026-03-01"

    assert await payment_status(db_session, data["paymentId"]) == "Pending"
    assert await audit_count(db_session, AuditAction.BOOKING_CREATED) == 1


@pytest.mark.asyncio
async def test_create_bank_transfer_booking(client: AsyncClient, db_session, student_headers, room, term, package):
    """Bank transfer bookings wait for staff verification."""
    response = await client.post(
        "/api/v1/bookings/",
        json=booking_payload(room, term, package, method="Bank Transfer"),
        headers=student_headers,
    )
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "Pending Verification"
    assert await payment_status(db_session, data["paymentId"]) == "Pending Verification"


@pytest.mark.asyncio
async def test_client_price_and_dates_are_ignored(client: AsyncClient, student_headers, room, term, package):
    payload = booking_payload(room, term, package)
    payload.update({"totalPrice": 1, "startDate": "2030-01-01", "endDate": "2030-02-01"})

    response = await client.post("/api/v1/bookings/", json=payload, headers=student_headers)
    assert response.status_code == 200
    data = response.json()
    assert Decimal(data["totalPrice"]) == Decimal("1995.00")
    assert data["startDate"] == "2025-09-01"


@pytest.mark.asyncio
async def test_unauthenticated_booking_returns_401(client: AsyncClient, room, term, package):
    response = await client.post("/api/v1/bookings/", json=booking_payload(room, term, package))
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_unknown_room_returns_400(client: AsyncClient, db_session, student_headers, term, package):
    response = await client.post(
        "/api/v1/bookings/",
        json={
            "roomId": 999999,
            "academicTermId": term.id,
            "bookingPackageId": package.id,
            "paymentMethod": "Online",
        },
        headers=student_headers,
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid room, booking package, or academic term provided."
    assert await count_rows(db_session, Booking) == 0


@pytest.mark.asyncio
async def test_unknown_payment_method_returns_422(client: AsyncClient, student_headers, room, term, package):
    response = await client.post(
        "/api/v1/bookings/",
        json=booking_payload(room, term, package, method="Cash"),
        headers=student_headers,
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_overlapping_booking_returns_409(
    client: AsyncClient, db_session, student, other_student, room, term, package
):
    """Same room, overlapping dates: second request is rejected."""
    response1 = await client.post(
        "/api/v1/bookings/", json=booking_payload(room, term, package), headers=headers_for(student)
    )
    assert response1.status_code == 200

    response2 = await client.post(
        "/api/v1/bookings/", json=booking_payload(room, term, package), headers=headers_for(other_student)
    )
    assert response2.status_code == 409
    assert response2.json()["detail"] == "This room is already booked for the selected dates."
    assert response2.json()["code"] == "ROOM_ALREADY_BOOKED"

    assert await count_rows(db_session, Booking) == 1
    assert await count_rows(db_session, Payment) == 1


@pytest.mark.asyncio
async def test_back_to_back_stays_do_not_overlap(db_session, student, other_student, room, package):
    """A stay may start on the day the previous one ends."""
    autumn = AcademicTerm(term_name="Autumn", start_date=date(2025, 9, 1), end_date=date(2025, 12, 31))
    spring = AcademicTerm(term_name="Spring", start_date=date(2026, 3, 1), end_date=date(2026, 6, 30))
    db_session.add_all([autumn, spring])
    await db_session.commit()

    first = await _create(db_session, student, room, autumn, package)
    second = await _create(db_session, other_student, room, spring, package)

    assert first.end_date == second.start_date == date(2026, 3, 1)
    assert await count_rows(db_session, Booking) == 2


@pytest.mark.asyncio
async def test_other_room_same_dates_is_allowed(db_session, student, other_student, room, term, package):
    other_room = Room(room_number="102", type="Double", price_per_month=Decimal("275.00"))
    db_session.add(other_room)
    await db_session.commit()

    await _create(db_session, student, room, term, package)
    receipt = await _create(db_session, other_student, other_room, term, package)
    assert receipt.total_price == Decimal("1567.50")


@pytest.mark.asyncio
async def test_concurrent_bookings_exactly_one_wins(db_session, student, other_student, room, term, package):
    """Two transactions race for the same room: one commits, one conflicts."""

    async def attempt(user):
        async with TestSessionLocal() as session:
            return await _create(session, user, room, term, package)

    results = await asyncio.gather(
        attempt(student), attempt(other_student), return_exceptions=True
    )

    winners = [r for r in results if isinstance(r, BookingReceipt)]
    losers = [r for r in results if isinstance(r, RoomAlreadyBooked)]
    assert len(winners) == 1
    assert len(losers) == 1

    assert await count_rows(db_session, Booking) == 1
    assert await count_rows(db_session, Payment) == 1
    assert await count_rows(db_session, Payment, Payment.booking_id == winners[0].booking_id) == 1


@pytest.mark.asyncio
async def test_many_concurrent_bookings_one_winner(db_session, room, term, package):
    students = [
        await _make_user(db_session, f"racer{i}@example.com", "student", f"Racer {i}")
        for i in range(6)
    ]

    async def attempt(user):
        async with TestSessionLocal() as session:
            return await _create(session, user, room, term, package)

    results = await asyncio.gather(*(attempt(s) for s in students), return_exceptions=True)

    assert sum(isinstance(r, BookingReceipt) for r in results) == 1
    assert sum(isinstance(r, RoomAlreadyBooked) for r in results) == 5
    assert await count_rows(db_session, Booking) == 1


@pytest.mark.asyncio
async def test_payment_insert_failure_leaves_nothing(db_session, student, room, term, package, monkeypatch):
    """A failure after the booking insert rolls the booking back too."""

    async def broken_insert(*args, **kwargs):
        raise RuntimeError("payment insert failed")

    monkeypatch.setattr(booking_ledger, "_insert_payment", broken_insert)

    with pytest.raises(RuntimeError):
        await _create(db_session, student, room, term, package)

    assert await count_rows(db_session, Booking) == 0
    assert await count_rows(db_session, Payment) == 0


@pytest.mark.asyncio
async def test_commit_failure_leaves_nothing(db_session, student, room, term, package):
    class FailingCommitSession(AsyncSession):
        async def commit(self):
            raise ConnectionError("connection lost during commit")

    async with FailingCommitSession(testing_engine, expire_on_commit=False) as session:
        with pytest.raises(ConnectionError):
            await _create(session, student, room, term, package)

    assert await count_rows(db_session, Booking) == 0
    assert await count_rows(db_session, Payment) == 0

    # The room is still bookable afterwards
    receipt = await _create(db_session, student, room, term, package)
    assert receipt.booking_id


@pytest.mark.asyncio
async def test_unknown_package_raises_invalid_reference(db_session, student, room, term):
    missing = BookingPackage(id=987654, duration_months=3)
    with pytest.raises(InvalidReference):
        await _create(db_session, student, room, term, missing)


# ---------------------------------------------------------------------------
# Reads and invoices
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_list_and_get_own_bookings(client: AsyncClient, db_session, student, student_headers, room, term, package):
    receipt = await _create(db_session, student, room, term, package)

    listing = await client.get("/api/v1/bookings/", headers=student_headers)
    assert listing.status_code == 200
    assert [b["id"] for b in listing.json()] == [receipt.booking_id]

    detail = await client.get(f"/api/v1/bookings/{receipt.booking_id}", headers=student_headers)
    assert detail.status_code == 200
    assert detail.json()["status"] == "Pending Payment"


@pytest.mark.asyncio
async def test_other_students_booking_is_not_found(
    client: AsyncClient, db_session, student, other_student, room, term, package
):
    receipt = await _create(db_session, student, room, term, package)
    response = await client.get(
        f"/api/v1/bookings/{receipt.booking_id}", headers=headers_for(other_student)
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_staff_can_read_any_booking(client: AsyncClient, db_session, student, staff_headers, room, term, package):
    receipt = await _create(db_session, student, room, term, package)
    response = await client.get(f"/api/v1/bookings/{receipt.booking_id}", headers=staff_headers)
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_invoice_uses_package_duration(
    client: AsyncClient, db_session, student, student_headers, room, term, package
):
    receipt = await _create(db_session, student, room, term, package)
    response = await client.get(f"/api/v1/bookings/{receipt.booking_id}/invoice", headers=student_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["kind"] == "invoice"
    assert data["number"] == f"INV{receipt.booking_id}"
    assert data["duration_label"] == "6 Months"
    assert data["room_number"] == "101"
    assert Decimal(data["total_price"]) == Decimal("1995.00")


@pytest.mark.asyncio
async def test_invoice_becomes_receipt_once_confirmed(
    client: AsyncClient, db_session, student, student_headers, staff_headers, room, term, package
):
    receipt = await _create(db_session, student, room, term, package, PaymentMethod.BANK_TRANSFER)
    verified = await client.post(
        "/api/v1/payments/verify-bank-transfer",
        json={"paymentId": receipt.payment_id},
        headers=staff_headers,
    )
    assert verified.status_code == 200

    response = await client.get(f"/api/v1/bookings/{receipt.booking_id}/invoice", headers=student_headers)
    assert response.json()["kind"] == "receipt"
    assert response.json()["number"] == f"RC{receipt.booking_id}"


@pytest.mark.asyncio
async def test_single_month_label(client: AsyncClient, db_session, student, student_headers, room, term):
    monthly = BookingPackage(duration_months=1, discount_percentage=Decimal("0"))
    db_session.add(monthly)
    await db_session.commit()

    receipt = await _create(db_session, student, room, term, monthly)
    response = await client.get(f"/api/v1/bookings/{receipt.booking_id}/invoice", headers=student_headers)
    assert response.json()["duration_label"] == "1 Month"


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_cancel_releases_room(
    client: AsyncClient, db_session, student, other_student, student_headers, room, term, package
):
    receipt = await _create(db_session, student, room, term, package)

    response = await client.post(f"/api/v1/bookings/{receipt.booking_id}/cancel", headers=student_headers)
    assert response.status_code == 200
    assert response.json()["status"] == "Cancelled"
    assert await payment_status(db_session, receipt.payment_id) == "Failed"
    assert await audit_count(db_session, AuditAction.BOOKING_CANCELLED) == 1

    rebooked = await _create(db_session, other_student, room, term, package)
    assert rebooked.booking_id != receipt.booking_id


@pytest.mark.asyncio
async def test_cancel_twice_is_invalid_transition(
    client: AsyncClient, db_session, student, student_headers, room, term, package
):
    receipt = await _create(db_session, student, room, term, package)
    await client.post(f"/api/v1/bookings/{receipt.booking_id}/cancel", headers=student_headers)

    response = await client.post(f"/api/v1/bookings/{receipt.booking_id}/cancel", headers=student_headers)
    assert response.status_code == 409
    assert response.json()["code"] == "INVALID_TRANSITION"
    assert await audit_count(db_session, AuditAction.BOOKING_CANCELLED) == 1


@pytest.mark.asyncio
async def test_cannot_cancel_someone_elses_booking(
    client: AsyncClient, db_session, student, other_student, room, term, package
):
    receipt = await _create(db_session, student, room, term, package)
    response = await client.post(
        f"/api/v1/bookings/{receipt.booking_id}/cancel", headers=headers_for(other_student)
    )
    assert response.status_code == 404
    assert await booking_status(db_session, receipt.booking_id) == "Pending Payment"


@pytest.mark.asyncio
async def test_check_in_and_out(client: AsyncClient, db_session, student, staff_headers, room, term, package):
    receipt = await _create(db_session, student, room, term, package, PaymentMethod.BANK_TRANSFER)

    # Not confirmed yet
    early = await client.post(f"/api/v1/admin/bookings/{receipt.booking_id}/check-in", headers=staff_headers)
    assert early.status_code == 409

    await client.post(
        "/api/v1/payments/verify-bank-transfer",
        json={"paymentId": receipt.payment_id},
        headers=staff_headers,
    )

    checked_in = await client.post(f"/api/v1/admin/bookings/{receipt.booking_id}/check-in", headers=staff_headers)
    assert checked_in.status_code == 200
    assert checked_in.json()["status"] == "Occupied"
    assert checked_in.json()["checked_in_at"] is not None

    checked_out = await client.post(f"/api/v1/admin/bookings/{receipt.booking_id}/check-out", headers=staff_headers)
    assert checked_out.status_code == 200
    assert checked_out.json()["status"] == "Completed"
    assert checked_out.json()["checked_out_at"] is not None

    assert await audit_count(db_session, AuditAction.CHECKED_IN) == 1
    assert await audit_count(db_session, AuditAction.CHECKED_OUT) == 1


@pytest.mark.asyncio
async def test_student_cannot_check_in(client: AsyncClient, db_session, student, student_headers, room, term, package):
    receipt = await _create(db_session, student, room, term, package)
    response = await client.post(f"/api/v1/admin/bookings/{receipt.booking_id}/check-in", headers=student_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_maintenance_hold_frees_dates(
    client: AsyncClient, db_session, student, other_student, staff_headers, room, term, package
):
    receipt = await _create(db_session, student, room, term, package)
    response = await client.post(
        f"/api/v1/admin/bookings/{receipt.booking_id}/maintenance", headers=staff_headers
    )
    assert response.status_code == 200
    assert response.json()["status"] == "Maintenance"

    await _create(db_session, other_student, room, term, package)


@pytest.mark.asyncio
async def test_transition_on_missing_booking_is_404(client: AsyncClient, staff_headers):
    response = await client.post("/api/v1/admin/bookings/999999/check-out", headers=staff_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_out_of_range_ids_are_422(client: AsyncClient, student_headers, staff_headers, room, term, package):
    payload = booking_payload(room, term, package)
    payload["roomId"] = 2**31
    created = await client.post("/api/v1/bookings/", json=payload, headers=student_headers)
    assert created.status_code == 422

    fetched = await client.get("/api/v1/bookings/99999999999", headers=student_headers)
    assert fetched.status_code == 422

    checked_in = await client.post("/api/v1/admin/bookings/99999999999/check-in", headers=staff_headers)
    assert checked_in.status_code == 422
