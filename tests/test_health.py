def test_health(anon_client):
    resp = anon_client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


def test_root(anon_client):
    assert anon_client.get("/").status_code == 200
