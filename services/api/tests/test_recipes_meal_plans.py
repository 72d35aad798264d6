"""Recipes, meal plans and meal-planning preferences."""

import threading
from concurrent.futures import ThreadPoolExecutor

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from hearth.db import Base, get_db
from hearth.main import app
from hearth.models import Household, MealPlan, MealPlanningPreference, Recipe, User
from hearth.scoping import HouseholdScope
from hearth.services.meal_planning import (
    normalize_external_links,
    normalize_recipe_ids,
    upsert_preferences,
)


def _recipe(db_session, household, title, tags=None, description=None):
    r = Recipe(household_id=household.id, title=title, tags=tags or [], description=description)
    db_session.add(r)
    db_session.commit()
    db_session.refresh(r)
    return r


def test_create_recipe_defaults(client, headers):
    response = client.post("/api/recipes/", headers=headers, json={"title": "Toast"})
    assert response.status_code == 201
    data = response.json()["data"]
    assert data["source"] == "manual"
    assert data["ingredientsJson"] == []
    assert data["instructionsJson"] == []
    assert data["tags"] == []
    assert data["attachmentsJson"] == []


def test_create_recipe_stores_camel_case_json(client, headers):
    response = client.post("/api/recipes/", headers=headers, json={
        "title": "Soup",
        "ingredientsJson": [{"name": "Leek", "quantity": 2}],
        "attachmentsJson": [{"url": "https://example.com/soup.jpg", "mediaType": "image/jpeg"}],
        "tags": ["dinner"],
        "source": "family",
    })
    data = response.json()["data"]
    assert data["ingredientsJson"][0]["name"] == "Leek"
    assert data["attachmentsJson"][0]["mediaType"] == "image/jpeg"
    assert data["source"] == "family"


def test_recipe_validation(client, headers):
    assert client.post("/api/recipes/", headers=headers, json={"title": ""}).status_code == 422
    assert client.post("/api/recipes/", headers=headers, json={"title": "x", "source": "tv"}).status_code == 422
    assert client.post("/api/recipes/", headers=headers, json={"title": "x", "prepTimeMinutes": -1}).status_code == 422


def test_list_recipes_search_and_tags(client, db_session, headers, household):
    _recipe(db_session, household, "Pancakes", tags=["breakfast", "quick"])
    _recipe(db_session, household, "Omelette", tags=["breakfast"], description="Quick eggs")
    _recipe(db_session, household, "Stew", tags=["dinner"])

    search = client.get("/api/recipes/", headers=headers, params={"search": "quick"}).json()
    assert [r["title"] for r in search["data"]] == ["Omelette"]

    breakfast = client.get("/api/recipes/", headers=headers, params={"tag": "breakfast"}).json()
    assert breakfast["meta"]["total"] == 2

    both = client.get("/api/recipes/", headers=headers, params={"tags": "breakfast, quick"}).json()
    assert [r["title"] for r in both["data"]] == ["Pancakes"]

    combined = client.get("/api/recipes/", headers=headers, params={"tag": "dinner", "tags": "breakfast"}).json()
    assert combined["data"] == []


def test_update_and_delete_recipe(client, db_session, headers, household):
    recipe = _recipe(db_session, household, "Draft")
    patched = client.patch(f"/api/recipes/{recipe.id}", headers=headers, json={"notes": "Use butter"})
    assert patched.json()["data"]["notes"] == "Use butter"
    assert patched.json()["data"]["title"] == "Draft"

    assert client.delete(f"/api/recipes/{recipe.id}", headers=headers).json() == {"success": True}
    assert client.get(f"/api/recipes/{recipe.id}", headers=headers).status_code == 404


def test_recipes_of_other_household_are_invisible(client, db_session, headers, other_household):
    foreign = _recipe(db_session, other_household, "Secret sauce")
    assert client.get(f"/api/recipes/{foreign.id}", headers=headers).status_code == 404
    assert client.get("/api/recipes/", headers=headers).json()["meta"]["total"] == 0


def test_normalize_recipe_ids():
    assert normalize_recipe_ids(["a", "b", "a", "", 3]) == ["a", "b"]
    assert normalize_recipe_ids(None, "legacy") == ["legacy"]
    assert normalize_recipe_ids(["a"], "a") == ["a"]


def test_normalize_external_links():
    links = normalize_external_links([
        {"url": " https://example.com ", "title": "  Blog "},
        {"url": ""},
        {"title": "no url"},
        "junk",
    ])
    assert links == [{"url": "https://example.com", "title": "Blog"}]
    assert normalize_external_links("nope") == []


def test_bulk_upsert_counts_created_and_updated(client, db_session, headers, household):
    recipe = _recipe(db_session, household, "Tacos")
    body = {"entries": [
        {"planDate": "2026-03-02", "mealSlot": "dinner", "recipeIdsJson": [recipe.id]},
        {"planDate": "2026-03-02", "mealSlot": "lunch", "notes": "Leftovers"},
    ]}
    first = client.put("/api/meal-plans/bulk", headers=headers, json=body)
    assert first.status_code == 200
    assert first.json()["data"] == {"created": 2, "updated": 0, "total": 2}

    body["entries"][1]["notes"] = "Sandwiches"
    second = client.put("/api/meal-plans/bulk", headers=headers, json=body)
    assert second.json()["data"] == {"created": 0, "updated": 2, "total": 2}
    assert db_session.query(MealPlan).count() == 2

    plans = client.get("/api/meal-plans/", headers=headers, params={
        "startDate": "2026-03-01", "endDate": "2026-03-07",
    }).json()["data"]
    assert [p["mealSlot"] for p in plans] == ["dinner", "lunch"]
    assert plans[0]["recipeId"] == recipe.id
    assert plans[0]["recipes"] == [{"id": recipe.id, "title": "Tacos"}]
    assert plans[1]["notes"] == "Sandwiches"


def test_bulk_upsert_rejects_bad_slot_without_writing(client, db_session, headers):
    response = client.put("/api/meal-plans/bulk", headers=headers, json={"entries": [
        {"planDate": "2026-03-02", "mealSlot": "brunch"},
    ]})
    assert response.status_code == 422
    assert db_session.query(MealPlan).count() == 0


def test_patch_meal_plan_syncs_legacy_recipe_id(client, db_session, headers, household):
    a = _recipe(db_session, household, "A")
    b = _recipe(db_session, household, "B")
    plan = MealPlan(household_id=household.id, plan_date=a.created_at.date(), meal_slot="dinner")
    db_session.add(plan)
    db_session.commit()

    response = client.patch(f"/api/meal-plans/{plan.id}", headers=headers, json={
        "recipeIdsJson": [b.id, a.id, b.id],
        "externalLinksJson": [{"url": "https://example.com/r", "title": "Blog"}],
    })
    data = response.json()["data"]
    assert data["recipeIdsJson"] == [b.id, a.id]
    assert data["recipeId"] == b.id
    assert data["externalLinksJson"] == [{"url": "https://example.com/r", "title": "Blog"}]

    cleared = client.patch(f"/api/meal-plans/{plan.id}", headers=headers, json={"recipeIdsJson": []})
    assert cleared.json()["data"]["recipeId"] is None


def test_delete_meal_plan(client, db_session, headers, household):
    plan = MealPlan(household_id=household.id, plan_date=household.created_at.date(), meal_slot="snacks")
    db_session.add(plan)
    db_session.commit()
    assert client.delete(f"/api/meal-plans/{plan.id}", headers=headers).json() == {"success": True}
    assert client.delete(f"/api/meal-plans/{plan.id}", headers=headers).status_code == 404


def test_preferences_empty_then_saved(client, headers):
    assert client.get("/api/meal-planning-preferences/", headers=headers).json() == {"data": None}

    saved = client.put("/api/meal-planning-preferences/", headers=headers, json={"notes": "Vegetarian weekdays"})
    assert saved.status_code == 200
    assert saved.json()["data"]["notes"] == "Vegetarian weekdays"

    fetched = client.get("/api/meal-planning-preferences/", headers=headers).json()["data"]
    assert fetched["notes"] == "Vegetarian weekdays"


def test_preferences_too_long_is_422(client, headers):
    response = client.put("/api/meal-planning-preferences/", headers=headers, json={"notes": "x" * 20001})
    assert response.status_code == 422


def test_preference_writes_from_two_sessions_keep_one_row(db_session, household):
    """Writers in separate sessions update the same row; the later write wins."""
    from conftest import TestingSessionLocal

    writer_a = TestingSessionLocal()
    writer_b = TestingSessionLocal()
    try:
        upsert_preferences(HouseholdScope(writer_a, household.id), "from A")
        upsert_preferences(HouseholdScope(writer_b, household.id), "from B")
    finally:
        writer_a.close()
        writer_b.close()

    rows = db_session.query(MealPlanningPreference).filter_by(household_id=household.id).all()
    assert len(rows) == 1
    assert rows[0].notes == "from B"


def test_missing_row_after_write_is_generic_500(client, headers, monkeypatch):
    from hearth.routers import meal_planning_prefs

    def _no_row(scope, notes):
        raise RuntimeError("Failed to save meal planning preferences")

    monkeypatch.setattr(meal_planning_prefs, "upsert_preferences", _no_row)
    response = client.put("/api/meal-planning-preferences/", headers=headers, json={"notes": "x"})
    assert response.status_code == 500
    assert response.json() == {"detail": "Internal server error"}


def test_integrity_error_is_409(client, headers, monkeypatch):
    from sqlalchemy.exc import IntegrityError

    from hearth.routers import meal_planning_prefs

    def _conflict(scope, notes):
        raise IntegrityError("INSERT", {}, Exception("duplicate key"))

    monkeypatch.setattr(meal_planning_prefs, "upsert_preferences", _conflict)
    response = client.put("/api/meal-planning-preferences/", headers=headers, json={"notes": "x"})
    assert response.status_code == 409
    assert response.json() == {"detail": "Conflicts with existing data"}


def test_tag_filter_matches_whole_tags_only(client, db_session, headers, household):
    _recipe(db_session, household, "Pancakes", tags=["quick", "100%_oat"])
    _recipe(db_session, household, "Stew", tags=["slow"])

    def titles(**params):
        return [r["title"] for r in client.get("/api/recipes/", headers=headers, params=params).json()["data"]]

    assert titles(tag="q_ick") == []
    assert titles(tag="%") == []
    assert titles(tag="qui") == []
    assert titles(tag="100%_oat") == ["Pancakes"]


def test_tag_filter_handles_non_ascii_tags(client, db_session, headers, household):
    _recipe(db_session, household, "Crème brûlée", tags=["dessert", "français"])
    _recipe(db_session, household, "Ramen", tags=["日本"])

    french = client.get("/api/recipes/", headers=headers, params={"tag": "français"}).json()["data"]
    assert [r["title"] for r in french] == ["Crème brûlée"]
    japanese = client.get("/api/recipes/", headers=headers, params={"tags": "日本"}).json()["data"]
    assert [r["title"] for r in japanese] == ["Ramen"]


def test_bulk_upsert_rejects_recipe_of_other_household(client, db_session, headers, household, other_household):
    foreign = _recipe(db_session, other_household, "Secret sauce")
    own = _recipe(db_session, household, "Tacos")
    response = client.put("/api/meal-plans/bulk", headers=headers, json={"entries": [
        {"planDate": "2026-03-02", "mealSlot": "lunch", "recipeIdsJson": [own.id]},
        {"planDate": "2026-03-02", "mealSlot": "dinner", "recipeIdsJson": [foreign.id]},
    ]})
    assert response.status_code == 404
    assert response.json()["detail"] == "Recipe not found"
    assert db_session.query(MealPlan).count() == 0


def test_bulk_upsert_recipe_ids_must_be_uuids(client, db_session, headers):
    response = client.put("/api/meal-plans/bulk", headers=headers, json={"entries": [
        {"planDate": "2026-03-02", "mealSlot": "dinner", "recipeIdsJson": ["not-a-uuid"]},
    ]})
    assert response.status_code == 422
    assert db_session.query(MealPlan).count() == 0


def test_patch_meal_plan_rejects_recipe_of_other_household(client, db_session, headers, household, other_household):
    own = _recipe(db_session, household, "Tacos")
    foreign = _recipe(db_session, other_household, "Secret sauce")
    plan = MealPlan(household_id=household.id, plan_date=own.created_at.date(), meal_slot="dinner",
                    recipe_id=own.id, recipe_ids_json=[own.id])
    db_session.add(plan)
    db_session.commit()

    response = client.patch(f"/api/meal-plans/{plan.id}", headers=headers, json={"recipeIdsJson": [foreign.id]})
    assert response.status_code == 404

    db_session.refresh(plan)
    assert plan.recipe_id == own.id
    assert plan.recipe_ids_json == [own.id]


def test_concurrent_preference_puts_keep_one_row(client, tmp_path):
    """Two PUTs released together on a household with no row leave exactly one row."""
    from conftest import auth_headers

    file_engine = create_engine(
        f"sqlite:///{tmp_path / 'prefs.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=file_engine)
    FileSession = sessionmaker(autocommit=False, autoflush=False, bind=file_engine)

    with FileSession() as setup:
        h = Household(name="Race")
        setup.add(h)
        setup.flush()
        u = User(email="race@example.com", name="Race", household_id=h.id)
        setup.add(u)
        setup.commit()
        household_id = h.id
        race_headers = auth_headers(u)

    def file_db():
        db = FileSession()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = file_db
    barrier = threading.Barrier(2)

    def put(notes):
        barrier.wait()
        return client.put("/api/meal-planning-preferences/", headers=race_headers, json={"notes": notes})

    try:
        with ThreadPoolExecutor(max_workers=2) as pool:
            responses = list(pool.map(put, ["from A", "from B"]))

        assert [r.status_code for r in responses] == [200, 200]
        with FileSession() as check:
            rows = check.query(MealPlanningPreference).filter_by(household_id=household_id).all()
        assert len(rows) == 1
        assert rows[0].notes in {"from A", "from B"}
    finally:
        file_engine.dispose()
