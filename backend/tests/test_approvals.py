API = "/api/v1"
SIGN_OFF = ("signoff.pdf", b"%PDF sign-off memo", "application/pdf")


def _completed_job(client, create_job, admin_headers, **kwargs):
    job = create_job(**kwargs)
    client.put(f"{API}/jobs/{job['id']}/approve", headers=admin_headers)
    client.post(
        f"{API}/operations/jobs/{job['id']}/engagement-letter",
        files={"engagement_letter": ("letter.pdf", b"%PDF letter", "application/pdf")},
        headers=admin_headers,
    )
    r = client.put(f"{API}/operations/jobs/{job['id']}/complete", headers=admin_headers)
    assert r.status_code == 200, r.text
    return job


def _approve(client, kind, job_id, stage, headers, notes=None, document=SIGN_OFF):
    files = {"document": document} if document is not None else None
    data = {"notes": notes} if notes else None
    return client.put(f"{API}/{kind}/jobs/{job_id}/{stage}-approve", data=data, files=files, headers=headers)


def _run_chain(client, kind, job_id, headers):
    for stage in ("lmro", "dlmro", "ceo"):
        r = _approve(client, kind, job_id, stage, headers)
        assert r.status_code == 200, r.text
    return r.json()


def _titles(client, headers, sub_type):
    notifications = client.get(f"{API}/notifications", headers=headers).json()
    return [n["title"] for n in notifications if n["sub_type"] == sub_type]


class TestInitialize:
    def test_initialize_kyc(self, client, create_job, admin_headers):
        job = _completed_job(client, create_job, admin_headers)
        r = client.post(f"{API}/kyc/jobs/{job['id']}/initialize", headers=admin_headers)
        assert r.status_code == 201
        process = r.json()
        assert process["kind"] == "kyc"
        assert process["status"] == "in_progress"
        assert process["current_stage"] == "lmro"
        assert process["client_name"] == "Jane Client"
        assert process["lmro_approval"]["approved"] is False

        r = client.post(f"{API}/kyc/jobs/{job['id']}/initialize", headers=admin_headers)
        assert r.status_code == 409

        r = client.get(f"{API}/jobs/{job['id']}/timeline", headers=admin_headers)
        assert r.json()[-1]["status"] == "kyc_pending"
        # The job keeps its own status while the chain runs.
        assert client.get(f"{API}/jobs/{job['id']}", headers=admin_headers).json()["status"] == "completed"

    def test_only_completed_jobs(self, client, create_job, admin_headers):
        job = create_job()
        client.put(f"{API}/jobs/{job['id']}/approve", headers=admin_headers)
        r = client.post(f"{API}/kyc/jobs/{job['id']}/initialize", headers=admin_headers)
        assert r.status_code == 400
        assert "approved" in r.json()["detail"]

    def test_bra_waits_for_kyc(self, client, create_job, admin_headers):
        job = _completed_job(client, create_job, admin_headers)
        r = client.post(f"{API}/bra/jobs/{job['id']}/initialize", headers=admin_headers)
        assert r.status_code == 400
        assert "KYC" in r.json()["detail"]

        client.post(f"{API}/kyc/jobs/{job['id']}/initialize", headers=admin_headers)
        r = client.post(f"{API}/bra/jobs/{job['id']}/initialize", headers=admin_headers)
        assert r.status_code == 400

    def test_requires_operation_management(self, client, create_job, admin_headers, make_user):
        _, lmro = make_user("kyc_management.lmro")
        _, ops = make_user("operation_management")
        job = _completed_job(client, create_job, admin_headers)
        assert client.post(f"{API}/kyc/jobs/{job['id']}/initialize", headers=lmro).status_code == 403
        assert client.post(f"{API}/kyc/jobs/{job['id']}/initialize", headers=ops).status_code == 201

    def test_lmro_holders_notified(self, client, create_job, admin_headers, make_user):
        _, lmro = make_user("kyc_management.lmro")
        _, dlmro = make_user("kyc_management.dlmro")
        job = _completed_job(client, create_job, admin_headers)
        client.post(f"{API}/kyc/jobs/{job['id']}/initialize", headers=admin_headers)

        assert "New KYC Review Required" in _titles(client, lmro, "kyc")
        assert "New KYC Review Required" not in _titles(client, dlmro, "kyc")

    def test_unknown_job(self, client, admin_headers):
        r = client.post(f"{API}/kyc/jobs/missing/initialize", headers=admin_headers)
        assert r.status_code == 404


class TestStatus:
    def test_status_before_and_after_initialize(self, client, create_job, admin_headers, make_user):
        _, lmro = make_user("kyc_management.lmro")
        job = _completed_job(client, create_job, admin_headers)
        url = f"{API}/kyc/jobs/{job['id']}/status"

        r = client.get(url, headers=lmro)
        assert r.status_code == 200
        assert r.json() == {
            "exists": False,
            "job_id": job["id"],
            "job_status": "completed",
            "can_initialize": True,
            "process": None,
        }

        client.post(f"{API}/kyc/jobs/{job['id']}/initialize", headers=admin_headers)
        data = client.get(url, headers=lmro).json()
        assert data["exists"] is True
        assert data["can_initialize"] is False
        assert data["process"]["current_stage"] == "lmro"

    def test_pending_job_cannot_initialize(self, client, create_job, admin_headers):
        job = create_job()
        data = client.get(f"{API}/kyc/jobs/{job['id']}/status", headers=admin_headers).json()
        assert data["exists"] is False
        assert data["can_initialize"] is False

    def test_requires_a_chain_permission(self, client, create_job, admin_headers, make_user):
        _, ops = make_user("operation_management")
        _, bra_ceo = make_user("bra_management.ceo")
        job = _completed_job(client, create_job, admin_headers)
        assert client.get(f"{API}/kyc/jobs/{job['id']}/status", headers=ops).status_code == 403
        assert client.get(f"{API}/kyc/jobs/{job['id']}/status", headers=bra_ceo).status_code == 403
        assert client.get(f"{API}/bra/jobs/{job['id']}/status", headers=bra_ceo).status_code == 200


class TestApprovalChain:
    def test_kyc_chain_completes_and_opens_bra(self, client, create_job, admin_headers, make_user):
        _, bra_lmro = make_user("bra_management.lmro")
        job = _completed_job(client, create_job, admin_headers)
        client.post(f"{API}/kyc/jobs/{job['id']}/initialize", headers=admin_headers)

        r = _approve(client, "kyc", job["id"], "lmro", admin_headers, notes="Identity verified")
        assert r.status_code == 200
        process = r.json()
        assert process["current_stage"] == "dlmro"
        assert process["lmro_approval"]["approved"] is True
        assert process["lmro_approval"]["notes"] == "Identity verified"
        assert process["lmro_approval"]["document"]["file_name"] == "signoff.pdf"
        assert process["lmro_approval"]["document"]["file_url"].endswith("_signoff.pdf")

        assert _approve(client, "kyc", job["id"], "dlmro", admin_headers).json()["current_stage"] == "ceo"
        process = _approve(client, "kyc", job["id"], "ceo", admin_headers).json()
        assert process["status"] == "completed"
        assert process["current_stage"] == "completed"
        assert process["completed_at"] is not None
        # Earlier stage documents are kept.
        assert process["lmro_approval"]["document"] is not None
        assert process["dlmro_approval"]["document"] is not None

        bra = client.get(f"{API}/bra/jobs/{job['id']}/status", headers=admin_headers).json()
        assert bra["exists"] is True
        assert bra["process"]["current_stage"] == "lmro"
        assert "New BRA Review Required" in _titles(client, bra_lmro, "bra")

        r = client.get(f"{API}/jobs/{job['id']}/timeline", headers=admin_headers)
        assert [e["status"] for e in r.json()][-5:] == [
            "kyc_pending", "kyc_lmro_approved", "kyc_dlmro_approved", "kyc_completed", "bra_pending",
        ]
        assert client.get(f"{API}/jobs/{job['id']}", headers=admin_headers).json()["status"] == "completed"

    def test_bra_chain_completes(self, client, create_job, admin_headers, make_user):
        assignee_id, assignee = make_user()
        job = _completed_job(client, create_job, admin_headers, assigned_person=assignee_id)
        client.post(f"{API}/kyc/jobs/{job['id']}/initialize", headers=admin_headers)
        _run_chain(client, "kyc", job["id"], admin_headers)

        process = _run_chain(client, "bra", job["id"], admin_headers)
        assert process["kind"] == "bra"
        assert process["status"] == "completed"
        assert "BRA Process Completed" in _titles(client, assignee, "bra")
        assert "KYC Process Completed" in _titles(client, assignee, "kyc")

        r = client.get(f"{API}/jobs/{job['id']}/timeline", headers=admin_headers)
        assert r.json()[-1]["status"] == "bra_completed"
        r = client.post(f"{API}/bra/jobs/{job['id']}/initialize", headers=admin_headers)
        assert r.status_code == 409

    def test_stages_run_in_order(self, client, create_job, admin_headers):
        job = _completed_job(client, create_job, admin_headers)
        client.post(f"{API}/kyc/jobs/{job['id']}/initialize", headers=admin_headers)
        r = _approve(client, "kyc", job["id"], "dlmro", admin_headers)
        assert r.status_code == 409
        assert "lmro" in r.json()["detail"]

        _approve(client, "kyc", job["id"], "lmro", admin_headers)
        assert _approve(client, "kyc", job["id"], "lmro", admin_headers).status_code == 409

    def test_each_stage_needs_its_own_permission(self, client, create_job, admin_headers, make_user):
        lmro_id, lmro = make_user("kyc_management.lmro")
        _, dlmro = make_user("kyc_management.dlmro")
        job = _completed_job(client, create_job, admin_headers)
        client.post(f"{API}/kyc/jobs/{job['id']}/initialize", headers=admin_headers)

        assert _approve(client, "kyc", job["id"], "lmro", dlmro).status_code == 403
        r = _approve(client, "kyc", job["id"], "lmro", lmro)
        assert r.status_code == 200
        assert r.json()["lmro_approval"]["approved_by"] == lmro_id
        assert "KYC Approval Required" in _titles(client, dlmro, "kyc")

        assert _approve(client, "kyc", job["id"], "dlmro", lmro).status_code == 403
        assert _approve(client, "kyc", job["id"], "dlmro", dlmro).status_code == 200

    def test_document_required(self, client, create_job, admin_headers):
        job = _completed_job(client, create_job, admin_headers)
        client.post(f"{API}/kyc/jobs/{job['id']}/initialize", headers=admin_headers)
        r = _approve(client, "kyc", job["id"], "lmro", admin_headers, notes="No file", document=None)
        assert r.status_code == 400
        assert "Document upload is required" in r.json()["detail"]

    def test_bad_document_changes_nothing(self, client, create_job, admin_headers, tmp_data):
        job = _completed_job(client, create_job, admin_headers)
        client.post(f"{API}/kyc/jobs/{job['id']}/initialize", headers=admin_headers)
        r = _approve(client, "kyc", job["id"], "lmro", admin_headers,
                     document=("memo.bin", b"\x00\x01", "application/octet-stream"))
        assert r.status_code == 415
        assert not (tmp_data / "uploads" / "approvals").exists()

        data = client.get(f"{API}/kyc/jobs/{job['id']}/status", headers=admin_headers).json()
        assert data["process"]["current_stage"] == "lmro"
        assert data["process"]["lmro_approval"]["approved"] is False

    def test_no_process_yet(self, client, create_job, admin_headers):
        job = _completed_job(client, create_job, admin_headers)
        assert _approve(client, "kyc", job["id"], "lmro", admin_headers).status_code == 404

    def test_unknown_stage(self, client, create_job, admin_headers):
        job = _completed_job(client, create_job, admin_headers)
        client.post(f"{API}/kyc/jobs/{job['id']}/initialize", headers=admin_headers)
        assert _approve(client, "kyc", job["id"], "cfo", admin_headers).status_code == 422

    def test_cancelled_job_stops_the_chain(self, client, create_job, admin_headers):
        job = _completed_job(client, create_job, admin_headers)
        client.post(f"{API}/kyc/jobs/{job['id']}/initialize", headers=admin_headers)
        client.put(f"{API}/jobs/{job['id']}/cancel", json={"cancellation_reason": "Client left"},
                   headers=admin_headers)
        r = _approve(client, "kyc", job["id"], "lmro", admin_headers)
        assert r.status_code == 409
        assert r.json()["detail"] == "Job has been cancelled"


class TestReject:
    def test_reject_at_current_stage(self, client, create_job, admin_headers, make_user):
        assignee_id, assignee = make_user()
        lmro_id, lmro = make_user("kyc_management.lmro")
        job = _completed_job(client, create_job, admin_headers, assigned_person=assignee_id)
        client.post(f"{API}/kyc/jobs/{job['id']}/initialize", headers=admin_headers)

        r = client.put(f"{API}/kyc/jobs/{job['id']}/reject",
                       json={"rejection_reason": "Source of funds unclear"}, headers=lmro)
        assert r.status_code == 200
        process = r.json()
        assert process["status"] == "rejected"
        assert process["current_stage"] == "rejected"
        assert process["rejection_reason"] == "Source of funds unclear"
        assert process["rejected_by"] == lmro_id
        assert process["rejected_at"] is not None

        assert "KYC Rejected" in _titles(client, assignee, "kyc")
        r = client.get(f"{API}/jobs/{job['id']}/timeline", headers=admin_headers)
        assert r.json()[-1]["status"] == "kyc_rejected"

        assert _approve(client, "kyc", job["id"], "lmro", lmro).status_code == 409
        assert client.post(f"{API}/kyc/jobs/{job['id']}/initialize", headers=admin_headers).status_code == 409

    def test_reason_required(self, client, create_job, admin_headers):
        job = _completed_job(client, create_job, admin_headers)
        client.post(f"{API}/kyc/jobs/{job['id']}/initialize", headers=admin_headers)
        r = client.put(f"{API}/kyc/jobs/{job['id']}/reject", json={"rejection_reason": "  "},
                       headers=admin_headers)
        assert r.status_code == 400

    def test_only_current_stage_may_reject(self, client, create_job, admin_headers, make_user):
        _, dlmro = make_user("kyc_management.dlmro")
        job = _completed_job(client, create_job, admin_headers)
        client.post(f"{API}/kyc/jobs/{job['id']}/initialize", headers=admin_headers)

        r = client.put(f"{API}/kyc/jobs/{job['id']}/reject", json={"rejection_reason": "No"}, headers=dlmro)
        assert r.status_code == 403
        assert "lmro" in r.json()["detail"]

        _approve(client, "kyc", job["id"], "lmro", admin_headers)
        r = client.put(f"{API}/kyc/jobs/{job['id']}/reject", json={"rejection_reason": "No"}, headers=dlmro)
        assert r.status_code == 200


class TestListing:
    def test_list_filters_by_status(self, client, create_job, admin_headers, make_user):
        _, ceo = make_user("kyc_management.ceo")
        first = _completed_job(client, create_job, admin_headers, gmail="a@example.com")
        second = _completed_job(client, create_job, admin_headers, gmail="b@example.com", client_name="Bo Client")
        for job in (first, second):
            client.post(f"{API}/kyc/jobs/{job['id']}/initialize", headers=admin_headers)
        client.put(f"{API}/kyc/jobs/{second['id']}/reject", json={"rejection_reason": "No"},
                   headers=admin_headers)

        r = client.get(f"{API}/kyc/jobs", headers=ceo)
        assert r.status_code == 200
        assert {p["job_id"] for p in r.json()} == {first["id"], second["id"]}

        r = client.get(f"{API}/kyc/jobs?status=rejected", headers=ceo)
        assert [(p["job_id"], p["client_name"]) for p in r.json()] == [(second["id"], "Bo Client")]

        r = client.get(f"{API}/kyc/jobs?status=in_progress&status=rejected", headers=ceo)
        assert len(r.json()) == 2

        assert client.get(f"{API}/bra/jobs", headers=admin_headers).json() == []
        assert client.get(f"{API}/kyc/jobs?status=done", headers=ceo).status_code == 422
