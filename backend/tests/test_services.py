class TestServices:
    def test_crud(self, client, admin_headers):
        r = client.post("/api/v1/services", json={
            "name": "Audit",
            "description": "Annual statutory audit",
        }, headers=admin_headers)
        assert r.status_code == 201
        service = r.json()
        assert service["status"] == "active"
        assert service["usage_count"] == 0

        r = client.put(f"/api/v1/services/{service['id']}", json={"status": "inactive"}, headers=admin_headers)
        assert r.status_code == 200
        assert r.json()["status"] == "inactive"

        r = client.get("/api/v1/services?status=active", headers=admin_headers)
        assert r.json() == []

        r = client.delete(f"/api/v1/services/{service['id']}", headers=admin_headers)
        assert r.status_code == 200
        assert client.get(f"/api/v1/services/{service['id']}", headers=admin_headers).status_code == 404

    def test_name_unique(self, client, admin_headers):
        client.post("/api/v1/services", json={"name": "Audit", "description": "a"}, headers=admin_headers)
        r = client.post("/api/v1/services", json={"name": "Audit", "description": "b"}, headers=admin_headers)
        assert r.status_code == 409

    def test_invalid_status(self, client, admin_headers):
        r = client.post("/api/v1/services", json={
            "name": "Audit",
            "description": "a",
            "status": "retired",
        }, headers=admin_headers)
        assert r.status_code == 400

    def test_any_user_can_read_only_admin_can_write(self, client, admin_headers, make_user):
        client.post("/api/v1/services", json={"name": "Audit", "description": "a"}, headers=admin_headers)
        _, headers = make_user("operation_management")
        assert len(client.get("/api/v1/services", headers=headers).json()) == 1
        r = client.post("/api/v1/services", json={"name": "Tax", "description": "b"}, headers=headers)
        assert r.status_code == 403
