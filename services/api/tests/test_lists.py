"""Shared lists: access, sharing, pins and items."""

from hearth.models import List, ListItem, ListShare


def _make_list(db_session, household, name, owner=None):
    lst = List(household_id=household.id, name=name, created_by_id=owner.id if owner else None)
    db_session.add(lst)
    db_session.commit()
    db_session.refresh(lst)
    return lst


def test_create_list_and_items(client, headers, user):
    created = client.post("/api/lists/", headers=headers, json={"name": "Groceries"})
    assert created.status_code == 201
    lst = created.json()["data"]
    assert lst["createdById"] == user.id
    assert lst["sharedUserIds"] == []

    item = client.post(f"/api/lists/{lst['id']}/items", headers=headers, json={"content": "Milk"})
    assert item.status_code == 201
    assert item.json()["data"]["markedOffAt"] is None

    detail = client.get(f"/api/lists/{lst['id']}", headers=headers).json()["data"]
    assert [i["content"] for i in detail["items"]] == ["Milk"]


def test_mark_off_and_unmark_item(client, headers):
    lst = client.post("/api/lists/", headers=headers, json={"name": "Packing"}).json()["data"]
    item = client.post(f"/api/lists/{lst['id']}/items", headers=headers, json={"content": "Socks"}).json()["data"]

    marked = client.patch(f"/api/lists/{lst['id']}/items/{item['id']}", headers=headers, json={"markedOff": True})
    assert marked.json()["data"]["markedOffAt"] is not None

    unmarked = client.patch(f"/api/lists/{lst['id']}/items/{item['id']}", headers=headers, json={"markedOff": False})
    assert unmarked.json()["data"]["markedOffAt"] is None

    assert client.delete(f"/api/lists/{lst['id']}/items/{item['id']}", headers=headers).json() == {"success": True}
    assert client.get(f"/api/lists/{lst['id']}/items", headers=headers).json()["data"] == []


def test_list_preview_shows_open_items_only(client, db_session, headers, household, user):
    lst = _make_list(db_session, household, "Chores", owner=user)
    db_session.add_all([ListItem(list_id=lst.id, content=f"Item {i}") for i in range(12)])
    db_session.add(ListItem(list_id=lst.id, content="Done", marked_off_at=lst.created_at))
    db_session.commit()

    data = client.get("/api/lists/", headers=headers).json()["data"]
    preview = data[0]["previewItems"]
    assert len(preview) == 10
    assert all(p["content"] != "Done" for p in preview)


def test_access_rules(client, db_session, headers, headers_for, household, user, housemate):
    own = _make_list(db_session, household, "Mine", owner=user)
    private = _make_list(db_session, household, "Jordan private", owner=housemate)
    shared = _make_list(db_session, household, "Jordan shared", owner=housemate)
    legacy = _make_list(db_session, household, "Legacy")
    db_session.add(ListShare(list_id=shared.id, user_id=user.id))
    db_session.commit()

    names = {lst["name"] for lst in client.get("/api/lists/", headers=headers).json()["data"]}
    assert names == {"Mine", "Jordan shared", "Legacy"}
    assert client.get(f"/api/lists/{private.id}", headers=headers).status_code == 404
    assert client.get(f"/api/lists/{own.id}", headers=headers_for(housemate)).status_code == 404
    assert client.get(f"/api/lists/{legacy.id}", headers=headers_for(housemate)).status_code == 200


def test_lists_of_other_household_are_invisible(client, db_session, headers, other_household):
    foreign = _make_list(db_session, other_household, "Foreign")
    assert client.get(f"/api/lists/{foreign.id}", headers=headers).status_code == 404
    assert client.get("/api/lists/", headers=headers).json()["meta"]["total"] == 0


def test_only_owner_updates_shares(client, db_session, headers, headers_for, household, user, housemate):
    lst = _make_list(db_session, household, "Owned", owner=user)

    response = client.patch(f"/api/lists/{lst.id}/shares", headers=headers, json={"userIds": [housemate.id]})
    assert response.status_code == 200
    assert response.json()["data"]["sharedUserIds"] == [housemate.id]

    # Housemate can now see it, but cannot change its shares
    assert client.get(f"/api/lists/{lst.id}", headers=headers_for(housemate)).status_code == 200
    forbidden = client.patch(f"/api/lists/{lst.id}/shares", headers=headers_for(housemate), json={"userIds": []})
    assert forbidden.status_code == 403


def test_sharing_with_user_outside_household_is_400(client, db_session, headers, household, user, other_user):
    lst = _make_list(db_session, household, "Owned", owner=user)
    response = client.patch(f"/api/lists/{lst.id}/shares", headers=headers, json={"userIds": [other_user.id]})
    assert response.status_code == 400
    assert db_session.query(ListShare).count() == 0


def test_updating_shares_claims_legacy_list(client, db_session, headers, household, user):
    lst = _make_list(db_session, household, "Legacy")
    client.patch(f"/api/lists/{lst.id}/shares", headers=headers, json={"userIds": []})
    db_session.expire_all()
    assert db_session.get(List, lst.id).created_by_id == user.id


def test_pin_reorder_and_unpin(client, db_session, headers, household, user):
    first = _make_list(db_session, household, "First", owner=user)
    second = _make_list(db_session, household, "Second", owner=user)

    pin1 = client.post(f"/api/lists/{first.id}/pin", headers=headers)
    assert pin1.status_code == 201
    assert pin1.json()["data"]["position"] == 0
    pin2 = client.post(f"/api/lists/{second.id}/pin", headers=headers).json()["data"]
    assert pin2["position"] == 1

    # Pinning again is idempotent
    again = client.post(f"/api/lists/{first.id}/pin", headers=headers).json()["data"]
    assert again["pinId"] == pin1.json()["data"]["pinId"]

    pinned = client.get("/api/lists/pinned", headers=headers).json()["data"]
    assert [p["name"] for p in pinned] == ["First", "Second"]

    client.patch("/api/lists/pins/reorder", headers=headers, json={"pinIds": [pin2["pinId"], again["pinId"]]})
    pinned = client.get("/api/lists/pinned", headers=headers).json()["data"]
    assert [p["name"] for p in pinned] == ["Second", "First"]

    assert client.delete(f"/api/lists/{first.id}/pin", headers=headers).json() == {"success": True}
    assert client.delete(f"/api/lists/{first.id}/pin", headers=headers).status_code == 404


def test_delete_list_removes_items(client, db_session, headers, household, user):
    lst = _make_list(db_session, household, "Temp", owner=user)
    db_session.add(ListItem(list_id=lst.id, content="x"))
    db_session.commit()

    assert client.delete(f"/api/lists/{lst.id}", headers=headers).json() == {"success": True}
    assert db_session.query(ListItem).count() == 0
