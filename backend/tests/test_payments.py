import json

from app.services import payment_service


class TestMonthlyPayments:
    def _invoices(self, *items):
        return json.dumps(list(items))

    def test_add_payment_with_invoice_files(self, client, create_job, admin_headers):
        job = create_job()
        r = client.post("/api/v1/monthlypayment/add", data={
            "job_id": job["id"],
            "job_type": "Accounting",
            "year": "2024",
            "month": "0",
            "invoices": self._invoices(
                {"invoice_date": "2024-01-05", "description": "Rent", "amount": 1000, "file_index": 0},
                {"invoice_date": "2024-01-09", "description": "Fuel", "amount": 250.5,
                 "is_incorrect_invoice": True, "incorrect_reason": "Wrong VAT number"},
            ),
        }, files=[
            ("invoice_files", ("rent.pdf", b"%PDF rent invoice", "application/pdf")),
        ], headers=admin_headers)
        assert r.status_code == 201, r.text
        data = r.json()
        assert data["total_amount"] == 1250.5
        assert data["has_incorrect_invoices"] is True
        assert data["status"] == "Paid"
        assert data["invoices"][0]["file_name"] == "rent.pdf"
        assert data["invoices"][0]["file_url"].endswith("_rent.pdf")
        assert data["invoices"][1]["file_url"] is None

    def test_one_record_per_month(self, client, create_job, admin_headers):
        job = create_job()
        form = {
            "job_id": job["id"],
            "job_type": "Accounting",
            "year": "2024",
            "month": "3",
            "invoices": self._invoices({"invoice_date": "2024-04-01", "amount": 10}),
        }
        assert client.post("/api/v1/monthlypayment/add", data=form, headers=admin_headers).status_code == 201
        r = client.post("/api/v1/monthlypayment/add", data=form, headers=admin_headers)
        assert r.status_code == 409

    def test_racing_duplicate_is_a_conflict(self, client, create_job, admin_headers, monkeypatch):
        job = create_job()
        form = {
            "job_id": job["id"],
            "job_type": "Accounting",
            "year": "2024",
            "month": "7",
            "invoices": "[]",
        }
        assert client.post("/api/v1/monthlypayment/add", data=form, headers=admin_headers).status_code == 201
        # Both requests pass the lookup; the unique constraint catches the second.
        monkeypatch.setattr(payment_service, "_existing_payment", lambda *args: None)
        r = client.post("/api/v1/monthlypayment/add", data=form, headers=admin_headers)
        assert r.status_code == 409
        assert r.json()["detail"] == payment_service.DUPLICATE_MONTH

        r = client.get(f"/api/v1/monthlypayment/history/{job['id']}", headers=admin_headers)
        assert len(r.json()) == 1

    def test_month_out_of_range(self, client, create_job, admin_headers):
        job = create_job()
        r = client.post("/api/v1/monthlypayment/add", data={
            "job_id": job["id"],
            "job_type": "Accounting",
            "year": "2024",
            "month": "12",
            "invoices": "[]",
        }, headers=admin_headers)
        assert r.status_code == 422

    def test_bad_invoice_json(self, client, create_job, admin_headers):
        job = create_job()
        r = client.post("/api/v1/monthlypayment/add", data={
            "job_id": job["id"],
            "job_type": "Accounting",
            "year": "2024",
            "month": "1",
            "invoices": "not json",
        }, headers=admin_headers)
        assert r.status_code == 400

    def test_requires_account_management(self, client, create_job, make_user):
        _, headers = make_user("operation_management")
        job = create_job()
        r = client.post("/api/v1/monthlypayment/add", data={
            "job_id": job["id"],
            "job_type": "Accounting",
            "year": "2024",
            "month": "1",
            "invoices": "[]",
        }, headers=headers)
        assert r.status_code == 403

    def test_history_newest_first(self, client, create_job, admin_headers):
        job = create_job()
        for month in ("1", "5", "3"):
            client.post("/api/v1/monthlypayment/add", data={
                "job_id": job["id"],
                "job_type": "Accounting",
                "year": "2024",
                "month": month,
                "invoices": "[]",
            }, headers=admin_headers)
        r = client.get(f"/api/v1/monthlypayment/history/{job['id']}", headers=admin_headers)
        assert r.status_code == 200
        assert [p["month"] for p in r.json()] == [5, 3, 1]
        assert r.json()[0]["total_amount"] == 0
