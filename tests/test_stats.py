from app.database.supabase_client import Tables
from tests.conftest import add_circle, add_member


def test_stats_counts(client, db):
    add_circle(db, "fam-2", "Family")
    add_circle(db, "fam-1", "Cousins", owner="user-bob")
    add_member(db, "user-alice", "fam-1")

    response = client.get("/api/stats")

    assert response.status_code == 200
    assert response.json() == {
        "totalCircles": 2,
        "totalMemberships": 3,
        "totalMembers": 2,
        "membersByCircle": [
            {"circleId": "fam-1", "memberCount": 2},
            {"circleId": "fam-2", "memberCount": 1},
        ],
    }


def test_stats_empty(client):
    assert client.get("/api/stats").json()["totalCircles"] == 0


def test_stats_store_failure(client, db):
    db.fail(Tables.CIRCLES, "select", RuntimeError("unavailable"))

    assert client.get("/api/stats").status_code == 500
