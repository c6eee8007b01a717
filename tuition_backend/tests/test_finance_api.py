"""
HTTP tests for the payment endpoints and the process-payment contract.
"""

import pytest

from tuition_backend.tests.factories import invoice_student

FEES = {"TUITION": "1000.00"}


@pytest.mark.asyncio
async def test_process_payment_success_shape(client, scope, staff):
    billed = await invoice_student(scope, fees=FEES)

    response = await client.post("/v1/finance/process-payment", json={
        "invoiceId": billed.invoice_id,
        "studentId": billed.student_id,
        "centerId": staff.center_id,
        "amount": 400,
        "paymentMethod": "cash",
        "referenceNumber": "RCPT-0001",
    }, headers=staff.headers)

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["payment"]["invoiceId"] == billed.invoice_id
    assert body["payment"]["studentId"] == billed.student_id
    assert body["payment"]["amount"] == 400.0
    assert body["payment"]["paymentMethod"] == "cash"
    assert body["payment"]["referenceNumber"] == "RCPT-0001"
    assert body["invoice"] == {
        "id": billed.invoice_id,
        "status": "partial",
        "paidAmount": 400.0,
        "remainingAmount": 600.0,
    }


@pytest.mark.asyncio
async def test_process_payment_overpayment(client, scope, staff):
    billed = await invoice_student(scope, fees=FEES)

    response = await client.post("/v1/finance/process-payment", json={
        "invoiceId": billed.invoice_id, "amount": 1500, "paymentMethod": "cash",
    }, headers=staff.headers)

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert "exceeds remaining balance" in body["error"]


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", [
    {"amount": 0, "paymentMethod": "cash"},
    {"amount": -10, "paymentMethod": "cash"},
    {"amount": 10, "paymentMethod": "gold"},
])
async def test_process_payment_bad_input(client, scope, staff, payload):
    billed = await invoice_student(scope, fees=FEES)

    response = await client.post(
        "/v1/finance/process-payment", json={"invoiceId": billed.invoice_id, **payload}, headers=staff.headers
    )
    assert response.status_code == 400
    assert response.json()["success"] is False


@pytest.mark.asyncio
@pytest.mark.parametrize("payload,field", [
    ({"amount": 10, "paymentMethod": "cash"}, "invoiceId"),
    ({"invoiceId": "__invoice__", "paymentMethod": "cash"}, "amount"),
    ({"invoiceId": "__invoice__", "amount": 10}, "paymentMethod"),
    ({"invoiceId": "__invoice__", "amount": "ten", "paymentMethod": "cash"}, "amount"),
    ({"invoiceId": "not-a-number", "amount": 10, "paymentMethod": "cash"}, "invoiceId"),
])
async def test_process_payment_malformed_body(client, scope, staff, payload, field):
    billed = await invoice_student(scope, fees=FEES)
    body = {k: (billed.invoice_id if v == "__invoice__" else v) for k, v in payload.items()}

    response = await client.post("/v1/finance/process-payment", json=body, headers=staff.headers)

    assert response.status_code == 400
    assert response.json()["success"] is False
    assert field in response.json()["error"]
    invoice = await client.get(f"/v1/invoices/{billed.invoice_id}", headers=staff.headers)
    assert invoice.json()["paid_amount"] == 0.0


@pytest.mark.asyncio
async def test_process_payment_rejects_non_json_body(client, staff):
    response = await client.post(
        "/v1/finance/process-payment",
        content=b"invoiceId=1&amount=10",
        headers={**staff.headers, "Content-Type": "application/x-www-form-urlencoded"},
    )
    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "Request body must be valid JSON"}


@pytest.mark.asyncio
@pytest.mark.parametrize("amount", [1000.004, "100.005", "1e-3"])
async def test_process_payment_rejects_sub_cent_amounts(client, scope, staff, amount):
    billed = await invoice_student(scope, fees=FEES)

    response = await client.post("/v1/finance/process-payment", json={
        "invoiceId": billed.invoice_id, "amount": amount, "paymentMethod": "cash",
    }, headers=staff.headers)

    assert response.status_code == 400
    assert response.json() == {
        "success": False, "error": "Amount cannot have more than two decimal places",
    }
    ledger = await client.get("/v1/ledger/entries", headers=staff.headers)
    assert [e["entry_type"] for e in ledger.json()] == ["invoice"]


@pytest.mark.asyncio
async def test_process_payment_unknown_invoice(client, staff):
    response = await client.post("/v1/finance/process-payment", json={
        "invoiceId": 31337, "amount": 10, "paymentMethod": "cash",
    }, headers=staff.headers)
    assert response.status_code == 404
    assert response.json()["success"] is False


@pytest.mark.asyncio
async def test_process_payment_unexpected_failure(client, scope, staff, mocker):
    billed = await invoice_student(scope, fees=FEES)
    mocker.patch(
        "tuition_backend.app.api.v1.endpoints.payments.PaymentRecorder.record_payment",
        side_effect=RuntimeError("disk on fire"),
    )

    response = await client.post("/v1/finance/process-payment", json={
        "invoiceId": billed.invoice_id, "amount": 10, "paymentMethod": "cash",
    }, headers=staff.headers)
    assert response.status_code == 500
    assert response.json() == {"success": False, "error": "Payment processing failed"}


@pytest.mark.asyncio
async def test_rest_payment_flow(client, scope, staff):
    billed = await invoice_student(scope, fees=FEES)

    paid = await client.post("/v1/payments", json={
        "invoice_id": billed.invoice_id, "amount": "1000.00", "payment_method": "card",
    }, headers=staff.headers)
    assert paid.status_code == 201
    payment = paid.json()["payment"]
    assert paid.json()["invoices"][0]["status"] == "paid"
    assert payment["allocations"] == [{"invoice_id": billed.invoice_id, "allocated_amount": 1000.0}]

    reversed_ = await client.post(
        f"/v1/payments/{payment['id']}/reverse", json={"reason": "card chargeback"}, headers=staff.headers
    )
    assert reversed_.status_code == 201
    assert reversed_.json()["payment"]["reversal_of_id"] == payment["id"]
    assert reversed_.json()["invoices"][0]["status"] == "overdue"

    listed = await client.get("/v1/payments", params={"invoice_id": billed.invoice_id}, headers=staff.headers)
    assert len(listed.json()) == 2

    entries = await client.get("/v1/ledger/entries", headers=staff.headers)
    assert [e["entry_type"] for e in entries.json()] == ["invoice", "payment", "payment_reversal"]


@pytest.mark.asyncio
async def test_rest_overpayment_error_shape(client, scope, staff):
    billed = await invoice_student(scope, fees=FEES)

    response = await client.post("/v1/payments", json={
        "invoice_id": billed.invoice_id, "amount": "1000.01", "payment_method": "cash",
    }, headers=staff.headers)
    assert response.status_code == 400
    body = response.json()
    assert body["error_code"] == "ERR_VALIDATION_001"
    assert body["details"]["remaining_amount"] == "1000.00"


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
