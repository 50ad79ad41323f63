import pytest

from app.domain.users.service import UserService
from app.shared.errors import NotFoundError

from conftest import schedule_data

MISSING_ID = "00000000-0000-4000-8000-000000000000"


def user_payload(user_name, role="caregiver", **extra):
    return {
        "userName": user_name,
        "email": f"{user_name}@Example.com",
        "firstName": user_name.capitalize(),
        "lastName": "Doe",
        "role": role,
        **extra,
    }


def test_create_user(api):
    response = api.post(
        "/users",
        json=user_payload(
            "dana", location={"city": "Portland", "lat": 45.5, "long": -122.6}
        ),
    )
    assert response.status_code == 200
    body = response.json()
    assert body["email"] == "dana@example.com"
    assert body["status"] is True
    assert body["location"]["city"] == "Portland"

    fetched = api.get(f"/users/{body['id']}")
    assert fetched.status_code == 200
    assert fetched.json()["userName"] == "dana"


def test_create_user_invalid_email(api):
    response = api.post("/users", json={**user_payload("erin"), "email": "not-an-email"})
    assert response.status_code == 422


def test_create_user_duplicate_email(api, caregiver):
    response = api.post("/users", json={**user_payload("other"), "email": caregiver.email})
    assert response.status_code == 409
    assert response.json()["error"] == "resource_already_exists"


def test_get_user_errors(api):
    assert api.get("/users/abc").status_code == 400
    assert api.get(f"/users/{MISSING_ID}").status_code == 404


def test_list_users(api, client_user, caregiver):
    response = api.get("/users")
    assert response.status_code == 200
    assert {u["id"] for u in response.json()} == {client_user.id, caregiver.id}


def test_update_user_partial(api, caregiver):
    response = api.put(f"/users/{caregiver.id}", json={"lastName": "Smith", "status": False})
    assert response.status_code == 200
    body = response.json()
    assert body["lastName"] == "Smith"
    assert body["status"] is False
    assert body["firstName"] == caregiver.first_name


def test_update_user_rejects_empty_and_null(api, caregiver):
    assert api.put(f"/users/{caregiver.id}", json={}).status_code == 400
    assert api.put(f"/users/{caregiver.id}", json={"email": None}).status_code == 400


def test_delete_user(api, other_caregiver):
    response = api.delete(f"/users/{other_caregiver.id}")
    assert response.status_code == 200
    assert response.json() == {"message": "resource deleted successfully"}
    assert api.get(f"/users/{other_caregiver.id}").status_code == 404


def test_delete_user_referenced_by_schedule(api, service, client_user, caregiver):
    service.create_schedule(schedule_data(client_user.id, caregiver.id))

    response = api.delete(f"/users/{caregiver.id}")
    assert response.status_code == 400
    assert response.json()["detail"] == "user is referenced by schedules and cannot be deleted"


def test_search_users(api, client_user, caregiver, other_caregiver):
    response = api.get("/users/search", params={"role": "caregiver", "pageSize": 1, "sortBy": "userName"})
    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 2
    assert body["totalPages"] == 2
    assert [u["userName"] for u in body["data"]] == ["alice"]

    by_name = api.get("/users/search", params={"userName": "CLA"}).json()
    assert [u["id"] for u in by_name["data"]] == [client_user.id]


def test_search_users_clamps_page(api, caregiver):
    body = api.get("/users/search", params={"page": 0, "pageSize": 1000}).json()
    assert body["page"] == 1
    assert body["pageSize"] == 100


def test_get_user_by_email_ignores_case(db, caregiver):
    service = UserService(db)
    assert service.get_user_by_email("ALICE@example.com").id == caregiver.id
    with pytest.raises(NotFoundError):
        service.get_user_by_email("nobody@example.com")


def test_search_by_property(api, client_user, caregiver, other_caregiver):
    response = api.get("/users/search-property", params={"property": "role", "searchText": "CARE"})
    assert response.status_code == 200
    assert response.json() == ["caregiver"]

    cities = api.get("/users/search-property", params={"property": "city", "searchText": "spring"})
    assert cities.json() == ["Springfield"]

    names = api.get("/users/search-property", params={"property": "userName", "searchText": "b"})
    assert names.json() == ["bob"]


def test_search_by_property_rejects_unknown_property(api, caregiver):
    response = api.get("/users/search-property", params={"property": "status", "searchText": "x"})
    assert response.status_code == 400
    assert response.json() == {
        "detail": "Unsupported search property: status",
        "error": "validation_error",
    }
