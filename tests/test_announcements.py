from app.models import SchoolAdmin


def _announcement(**overrides):
    payload = {
        "title": "Sports Day",
        "content": "Inter-house **sports day** is on Friday.\n\n- Bring water\n- Wear house colours",
    }
    payload.update(overrides)
    return payload


def _post(client, headers, payload):
    return client.post('/api/school-admin/communications/announcements', json=payload, headers=headers)


def test_create_announcement_defaults(client, admin_headers, admin_user):
    resp = _post(client, admin_headers, _announcement())

    assert resp.status_code == 201
    data = resp.get_json()
    assert data["audience"] == "ALL"
    assert data["isPublished"] is True
    assert data["publishDate"].endswith("Z")
    assert data["expiryDate"] is None
    link = SchoolAdmin.query.filter_by(user_id=admin_user.id).one()
    assert data["createdByAdminId"] == link.id
    assert data["createdBy"] == {"firstName": "Ama", "lastName": "Mensah"}


def test_announcement_markdown_is_rendered_and_sanitized(client, admin_headers):
    resp = _post(client, admin_headers, _announcement(
        content="**Bold** notice <script>alert('x')</script> [link](javascript:alert(1))",
    ))
    html = resp.get_json()["contentHtml"]
    assert "<strong>Bold</strong>" in html
    assert "<script>" not in html
    assert "javascript:" not in html


def test_announcement_validation(client, admin_headers):
    resp = _post(client, admin_headers, {"title": "Hi", "content": "short"})
    assert resp.status_code == 400
    errors = resp.get_json()["errors"]
    assert set(errors) == {"title", "content"}


def test_expiry_before_publish_rejected(client, admin_headers):
    resp = _post(client, admin_headers, _announcement(
        publishDate="2025-03-10T08:00:00Z", expiryDate="2025-03-09T08:00:00Z",
    ))
    assert resp.status_code == 400
    assert resp.get_json()["errors"] == {"expiryDate": ["Expiry date cannot be before the publish date."]}


def test_patch_expiry_checked_against_stored_publish_date(client, admin_headers):
    created = _post(client, admin_headers, _announcement(publishDate="2025-03-10T08:00:00Z")).get_json()

    resp = client.patch(
        f'/api/school-admin/communications/announcements/{created["id"]}',
        json={"expiryDate": "2025-03-01T00:00:00Z"},
        headers=admin_headers,
    )
    assert resp.status_code == 400
    assert "expiryDate" in resp.get_json()["errors"]

    resp = client.patch(
        f'/api/school-admin/communications/announcements/{created["id"]}',
        json={"expiryDate": "2025-04-01T00:00:00Z", "isPublished": False},
        headers=admin_headers,
    )
    assert resp.status_code == 200
    assert resp.get_json()["expiryDate"] == "2025-04-01T00:00:00Z"
    assert resp.get_json()["isPublished"] is False
    assert resp.get_json()["title"] == "Sports Day"


def test_list_announcements_newest_publish_first(client, admin_headers, other_admin_headers):
    _post(client, admin_headers, _announcement(title="Older notice", publishDate="2025-01-01T00:00:00Z"))
    _post(client, admin_headers, _announcement(title="Newer notice", publishDate="2025-02-01T00:00:00Z"))
    _post(client, other_admin_headers, _announcement(title="Riverside notice"))

    resp = client.get('/api/school-admin/communications/announcements', headers=admin_headers)
    assert [a["title"] for a in resp.get_json()] == ["Newer notice", "Older notice"]


def test_delete_announcement(client, admin_headers, other_admin_headers):
    created = _post(client, admin_headers, _announcement()).get_json()
    url = f'/api/school-admin/communications/announcements/{created["id"]}'

    assert client.delete(url, headers=other_admin_headers).status_code == 403
    assert client.delete(url, headers=admin_headers).status_code == 200
    assert client.get(url, headers=admin_headers).status_code == 404


def test_patch_null_published_flag_is_no_change(client, admin_headers):
    created = _post(client, admin_headers, _announcement()).get_json()
    resp = client.patch(
        f'/api/school-admin/communications/announcements/{created["id"]}',
        json={"isPublished": None},
        headers=admin_headers,
    )
    assert resp.status_code == 400
    assert resp.get_json()["message"] == "No changes provided to update."

    resp = client.get(f'/api/school-admin/communications/announcements/{created["id"]}', headers=admin_headers)
    assert resp.get_json()["isPublished"] is True
