def _job_titles(client, headers):
    r = client.get("/api/v1/notifications", headers=headers)
    assert r.status_code == 200
    return [n["title"] for n in r.json() if n["type"] == "job"]


class TestNotifications:
    def test_new_user_is_welcomed(self, client, make_user):
        _, headers = make_user()
        notifications = client.get("/api/v1/notifications", headers=headers).json()
        assert [(n["type"], n["title"]) for n in notifications] == [("user", "Welcome")]

    def test_assignee_is_notified(self, client, create_job, make_user):
        user_id, headers = make_user()
        create_job(assigned_person=user_id)

        assert _job_titles(client, headers) == ["New Job Assigned"]
        assigned = [n for n in client.get("/api/v1/notifications", headers=headers).json()
                    if n["title"] == "New Job Assigned"][0]
        assert assigned["sub_type"] == "assignment"
        assert assigned["read"] is False

    def test_new_job_notifications_link_the_job(self, client, create_job, make_user, admin_headers):
        user_id, headers = make_user()
        job = create_job(assigned_person=user_id)

        created = [n for n in client.get("/api/v1/notifications", headers=admin_headers).json()
                   if n["title"] == "New Job Created"]
        assert [n["job_id"] for n in created] == [job["id"]]
        assigned = [n for n in client.get("/api/v1/notifications", headers=headers).json()
                    if n["title"] == "New Job Assigned"]
        assert [n["job_id"] for n in assigned] == [job["id"]]

    def test_compliance_team_told_about_new_jobs(self, client, create_job, make_user, admin_headers):
        _, compliance = make_user("compliance_management")
        _, bystander = make_user()
        create_job()

        assert "New Job Created" in _job_titles(client, compliance)
        assert "New Job Created" in _job_titles(client, admin_headers)
        assert _job_titles(client, bystander) == []

    def test_unread_count_and_mark_read(self, client, create_job, make_user):
        user_id, headers = make_user()
        client.put("/api/v1/notifications/read", json={"notification_ids": []}, headers=headers)
        create_job(gmail="a@example.com", assigned_person=user_id)
        create_job(gmail="b@example.com", assigned_person=user_id)

        r = client.get("/api/v1/notifications/unread-count", headers=headers)
        assert r.json() == {"count": 2}

        first_id = client.get("/api/v1/notifications", headers=headers).json()[0]["id"]
        r = client.put("/api/v1/notifications/read", json={"notification_ids": [first_id]}, headers=headers)
        assert r.json() == {"updated": 1}
        assert client.get("/api/v1/notifications/unread-count", headers=headers).json() == {"count": 1}

        r = client.put("/api/v1/notifications/read", json={"notification_ids": []}, headers=headers)
        assert r.json() == {"updated": 1}
        assert client.get("/api/v1/notifications/unread-count", headers=headers).json() == {"count": 0}

    def test_rejection_notifies_assignee(self, client, create_job, make_user, admin_headers):
        user_id, headers = make_user()
        job = create_job(assigned_person=user_id)
        client.put(f"/api/v1/jobs/{job['id']}/reject", data={"rejection_reason": "Blurry ID"},
                   headers=admin_headers)

        notifications = client.get("/api/v1/notifications", headers=headers).json()
        rejected = [n for n in notifications if n["title"] == "Job Rejected"]
        assert len(rejected) == 1
        assert "Blurry ID" in rejected[0]["description"]
        assert rejected[0]["job_id"] == job["id"]

    def test_completion_notifies_kyc_lmro(self, client, create_job, make_user, admin_headers):
        _, lmro = make_user("kyc_management.lmro")
        job = create_job()
        client.put(f"/api/v1/jobs/{job['id']}/approve", headers=admin_headers)
        client.post(
            f"/api/v1/operations/jobs/{job['id']}/engagement-letter",
            files={"engagement_letter": ("letter.pdf", b"%PDF letter", "application/pdf")},
            headers=admin_headers,
        )
        client.put(f"/api/v1/operations/jobs/{job['id']}/complete", headers=admin_headers)

        assert _job_titles(client, lmro) == ["Operation Completed - Ready for KYC"]
