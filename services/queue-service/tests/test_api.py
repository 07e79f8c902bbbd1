def add_officers(client):
    client.post("/officers", json={"id": "o1", "prefix": "A", "name": "Alex", "counter_type": "registrar"})
    client.post("/officers", json={"id": "o2", "prefix": "B", "name": "Benedict", "counter_type": "registrar"})

def test_health_check(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"

def test_officers(client):
    add_officers(client)

    response = client.get("/officers")
    assert response.status_code == 200
    assert [o["prefix"] for o in response.json()] == ["A", "B"]

    response = client.patch("/officers/o2", json={"online": False})
    assert response.status_code == 200
    assert response.json()["online"] is False
    assert [o["id"] for o in client.get("/officers?online=true").json()] == ["o1"]

    assert client.get("/officers/nobody").status_code == 404
    assert client.post("/officers", json={"id": "o1", "prefix": "Z"}).status_code == 400

def test_create_ticket(client):
    add_officers(client)
    response = client.post(
        "/tickets",
        json={
            "counter_type": "registrar",
            "full_name": "Ana Cruz",
            "college": "Engineering",
            "email": "ana@ust.edu.ph",
        },
    )
    assert response.status_code == 201
    data = response.json()
    assert data["officer_id"] == "o1"
    assert data["number"] == 1
    assert data["status"] == "waiting"
    assert data["is_prioritized"] is False
    assert data["full_name"] == "Ana Cruz"

    second = client.post("/tickets", json={"officer_id": "o1"})
    assert second.json()["number"] == 2

def test_create_ticket_errors(client):
    add_officers(client)
    assert client.post("/tickets", json={}).status_code == 422

    response = client.post("/tickets", json={"counter_type": "library"})
    assert response.status_code == 400
    assert response.json()["detail"]["reason"] == "No available officers for this service"

    assert client.post("/tickets", json={"officer_id": "nobody"}).status_code == 404

def test_status_change_and_conflict(client):
    add_officers(client)
    ticket_id = client.post("/tickets", json={"officer_id": "o1"}).json()["id"]

    response = client.post(f"/tickets/{ticket_id}/status", json={"status": "served"})
    assert response.status_code == 200
    assert response.json()["status"] == "served"

    response_invalid = client.post(f"/tickets/{ticket_id}/status", json={"status": "no_show"})
    assert response_invalid.status_code == 409
    detail = response_invalid.json()["detail"]
    assert detail["error"] == "Invalid state transition"
    assert detail["current_state"] == "served"
    assert detail["request_id"] == response_invalid.headers["X-Request-ID"]

    assert client.post(f"/tickets/{ticket_id}/status", json={"status": "bogus"}).status_code == 422
    assert client.post("/tickets/999/status", json={"status": "served"}).status_code == 404

def test_revert(client):
    add_officers(client)
    ticket_id = client.post("/tickets", json={"officer_id": "o1"}).json()["id"]
    client.post(f"/tickets/{ticket_id}/status", json={"status": "no_show"})

    response = client.post(f"/tickets/{ticket_id}/revert")
    assert response.status_code == 200
    assert response.json()["status"] == "waiting"

    assert client.post(f"/tickets/{ticket_id}/revert").status_code == 409

def test_queue_order_with_prioritize(client):
    add_officers(client)
    ids = [client.post("/tickets", json={"officer_id": "o1"}).json()["id"] for _ in range(3)]

    client.post("/queue/o1/next")
    response = client.post(f"/tickets/{ids[2]}/prioritize")
    assert response.status_code == 200
    assert response.json()["is_prioritized"] is True

    queue = client.get("/queue/o1").json()
    assert queue["serving"]["id"] == ids[0]
    assert queue["next"]["id"] == ids[2]
    assert [t["id"] for t in queue["tickets"]] == [ids[0], ids[2], ids[1]]

def test_transfer(client):
    add_officers(client)
    ticket_id = client.post("/tickets", json={"officer_id": "o1"}).json()["id"]

    response = client.post(f"/tickets/{ticket_id}/transfer", json={"target_officer_id": "o2"})
    assert response.status_code == 200
    moved = response.json()
    assert moved["officer_id"] == "o2"
    assert moved["transferred_from_id"] == ticket_id

    assert client.get(f"/tickets/{ticket_id}").json()["status"] == "transferred"
    assert client.get("/queue/o1").json()["tickets"] == []
    assert [t["id"] for t in client.get("/queue/o2").json()["tickets"]] == [moved["id"]]

    stats = {s["officer_id"]: s for s in client.get("/stats/daily").json()}
    assert stats["o1"]["transferred_count"] == 1
    assert stats["o1"]["waiting_count"] == 0
    assert stats["o2"]["waiting_count"] == 1

def test_reset_queue_and_counters(client):
    add_officers(client)
    for _ in range(3):
        client.post("/tickets", json={"officer_id": "o1"})
    assert client.get("/queue/counters").json()["o1"] == 4

    response = client.delete("/queue/o1")
    assert response.status_code == 200
    assert response.json()["deleted"] == 3

    assert client.get("/queue/counters").json()["o1"] == 1
    assert client.post("/tickets", json={"officer_id": "o1"}).json()["number"] == 1

def test_display(client):
    add_officers(client)
    client.post("/tickets", json={"officer_id": "o1"})
    client.post("/tickets", json={"officer_id": "o1"})
    client.post("/queue/o1/next")
    client.post("/queue/o1/next")

    board = client.get("/queue/display").json()
    queues = {q["officer"]["id"]: q for q in board["queues"]}
    assert queues["o1"]["serving"]["number"] == 2
    assert queues["o1"]["waiting_count"] == 1
    assert board["last_served"]["number"] == 1

def test_daily_stats_refresh(client):
    add_officers(client)
    ticket_id = client.post("/tickets", json={"officer_id": "o1"}).json()["id"]
    client.post(f"/tickets/{ticket_id}/status", json={"status": "served"})
    live = client.get("/stats/daily?officer_id=o1").json()
    refreshed = client.post("/stats/daily/refresh").json()
    cached = client.get("/stats/daily?officer_id=o1").json()

    assert live == cached
    assert live[0]["served_count"] == 1
    assert live[0]["total_count"] == 1
    assert len(refreshed) == 2

def test_audit_events(client):
    add_officers(client)
    ticket_id = client.post("/tickets", json={"officer_id": "o1"}).json()["id"]
    client.post(f"/tickets/{ticket_id}/status", json={"status": "cancelled"})

    audit_res = client.get(f"/audit?ticket_id={ticket_id}")
    assert audit_res.status_code == 200
    audits = audit_res.json()
    assert len(audits) == 2
    assert audits[0]["action"] == "cancel"  # Orders descending
    assert audits[1]["action"] == "create"

def test_edit_officer(client):
    add_officers(client)
    response = client.patch("/officers/o2", json={"prefix": "C", "counter_type": "cashier", "role": "supervisor"})
    assert response.status_code == 200
    data = response.json()
    assert data["prefix"] == "C"
    assert data["counter_type"] == "cashier"
    assert data["role"] == "supervisor"
    assert data["online"] is True

    assert client.post("/tickets", json={"counter_type": "cashier"}).json()["officer_id"] == "o2"
    assert client.patch("/officers/o2", json={"prefix": ""}).status_code == 422
    assert client.patch("/officers/nobody", json={"online": False}).status_code == 404

def test_delete_officer(client):
    add_officers(client)
    ticket_id = client.post("/tickets", json={"officer_id": "o2"}).json()["id"]

    response = client.delete("/officers/o2")
    assert response.status_code == 409
    assert response.json()["detail"]["waiting_count"] == 1

    client.post(f"/tickets/{ticket_id}/status", json={"status": "served"})
    assert client.delete("/officers/o2").status_code == 204
    assert client.get("/officers/o2").status_code == 404
    assert [o["id"] for o in client.get("/officers").json()] == ["o1"]

def test_stats_history(client):
    add_officers(client)
    ticket_id = client.post("/tickets", json={"officer_id": "o1"}).json()["id"]
    client.post(f"/tickets/{ticket_id}/status", json={"status": "served"})
    today = client.get("/stats/daily?officer_id=o1").json()[0]["date"]

    response = client.get(f"/stats/history?start={today}&end={today}")
    assert response.status_code == 200
    history = response.json()
    assert [(h["officer_id"], h["served_count"]) for h in history] == [("o1", 1)]

    assert client.get(f"/stats/history?start={today}&end={today}&period=week").status_code == 400
    assert client.get(f"/stats/history?start={today}&end={today}&officer_id=nobody").status_code == 404
