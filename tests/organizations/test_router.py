"""HTTP tests for the organization directory."""

from uuid import uuid4

import pytest


GET_ORG = "FROM test_keyspace.organizations WHERE organization_id"


@pytest.fixture
def wired_app(app, services):
    app.state.organization_service = services.directory
    return app


def test_create_organization(wired_app, client, auth_headers) -> None:
    creator = uuid4()

    response = client.post(
        "/v1/organizations",
        json={"name": "Grace Church", "type": "church"},
        headers=auth_headers(creator),
    )

    assert response.status_code == 201
    body = response.json()
    assert body["slug"] == "grace-church"
    assert body["type"] == "church"
    assert body["leader_id"] == str(creator)


def test_create_rejects_unknown_type(wired_app, client, auth_headers) -> None:
    response = client.post(
        "/v1/organizations",
        json={"name": "Grace Church", "type": "diocese"},
        headers=auth_headers(uuid4()),
    )

    assert response.status_code == 422


def test_create_under_cell_is_rejected(
    wired_app, client, cql, result, rows, auth_headers
) -> None:
    creator = uuid4()
    parent = rows.organization(type="cell", leader_id=creator)
    cql.on(GET_ORG, result([parent]))

    response = client.post(
        "/v1/organizations",
        json={
            "name": "Grace Church",
            "type": "church",
            "parent_id": str(parent.organization_id),
        },
        headers=auth_headers(creator),
    )

    assert response.status_code == 400


def test_my_role(wired_app, client, cql, result, rows, auth_headers) -> None:
    org = rows.organization()
    cql.on(GET_ORG, result([org]))

    response = client.get(
        f"/v1/organizations/{org.organization_id}/role",
        headers=auth_headers(org.leader_id),
    )

    assert response.status_code == 200
    assert response.json()["role"] == "owner"
    assert response.json()["can_manage"] is True
