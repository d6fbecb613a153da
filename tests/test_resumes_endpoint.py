"""
Integration tests for /api/resumes endpoints.
"""
from datetime import timedelta

from app.db.models.resume import Resume
from app.core.timeutils import utcnow


def resume_payload(title="Backend Engineer", full_name="Jane Doe", **extra):
    payload = {
        "title": title,
        "data": {"fullName": full_name, "jobRole": "Engineer", "skills": "Python\nSQL"},
    }
    payload.update(extra)
    return payload


def add_resumes(db, user, count):
    for i in range(count):
        db.add(Resume(user_id=user.id, title=f"Resume {i}", data={"fullName": "Jane"}))
    db.commit()


def test_requires_login(client):
    response = client.get("/api/resumes")

    assert response.status_code == 401
    assert response.json()["error"] == "not_authenticated"


def test_create_and_get_resume(login, test_user):
    client = login(test_user)

    created = client.post("/api/resumes", json=resume_payload(template="modern"))
    assert created.status_code == 201
    resume_id = created.json()["resume"]["id"]

    response = client.get(f"/api/resumes/{resume_id}")
    assert response.status_code == 200
    resume = response.json()["resume"]
    assert resume["title"] == "Backend Engineer"
    assert resume["template"] == "modern"
    assert resume["data"]["fullName"] == "Jane Doe"
    assert resume["content"] == ""


def test_create_requires_title_and_data(login, test_user):
    response = login(test_user).post("/api/resumes", json={"title": "No data"})

    assert response.status_code == 400
    assert response.json()["error"] == "missing_field"


def test_free_plan_limit(login, db, test_user):
    """A free user with three resumes cannot create a fourth."""
    add_resumes(db, test_user, 3)

    response = login(test_user).post("/api/resumes", json=resume_payload())

    assert response.status_code == 403
    body = response.json()
    assert body["error"] == "plan_limit_exceeded"
    assert body["maxResumes"] == 3
    assert body["currentResumes"] == 3
    assert db.query(Resume).filter(Resume.user_id == test_user.id).count() == 3


def test_paid_plan_is_unlimited(login, db, pro_user):
    add_resumes(db, pro_user, 5)

    response = login(pro_user).post("/api/resumes", json=resume_payload())

    assert response.status_code == 201


def test_expired_paid_plan_counts_as_free(login, db, make_user):
    user = make_user(plan="pro", plan_expires_at=utcnow() - timedelta(days=1))
    add_resumes(db, user, 3)

    response = login(user).post("/api/resumes", json=resume_payload())

    assert response.status_code == 403
    db.expire_all()
    db.refresh(user)
    assert user.plan == "free"


def test_list_is_owner_scoped_and_newest_first(login, db, test_user, make_user):
    other = make_user()
    now = utcnow()
    db.add_all([
        Resume(user_id=test_user.id, title="Old", data={}, created_at=now - timedelta(days=2)),
        Resume(user_id=test_user.id, title="New", data={}, created_at=now),
        Resume(user_id=other.id, title="Not mine", data={}),
    ])
    db.commit()

    response = login(test_user).get("/api/resumes")

    assert response.status_code == 200
    titles = [r["title"] for r in response.json()["resumes"]]
    assert titles == ["New", "Old"]


def test_other_users_resume_is_not_found(login, db, test_user, make_user):
    other = make_user()
    resume = Resume(user_id=other.id, title="Private", data={})
    db.add(resume)
    db.commit()

    client = login(test_user)
    assert client.get(f"/api/resumes/{resume.id}").status_code == 404
    assert client.put(f"/api/resumes/{resume.id}", json={"title": "Hijacked"}).status_code == 404
    assert client.delete(f"/api/resumes/{resume.id}").status_code == 404
    assert client.get(f"/api/resumes/{resume.id}/download").status_code == 404

    db.expire_all()
    assert db.get(Resume, resume.id).title == "Private"


def test_update_keeps_missing_fields(login, db, test_user):
    resume = Resume(user_id=test_user.id, title="Draft", data={"fullName": "Jane"}, template="classic")
    db.add(resume)
    db.commit()

    response = login(test_user).put(f"/api/resumes/{resume.id}", json={"title": "Final"})

    assert response.status_code == 200
    updated = response.json()["resume"]
    assert updated["title"] == "Final"
    assert updated["template"] == "classic"
    assert updated["data"] == {"fullName": "Jane"}


def test_delete_resume(login, db, test_user):
    resume = Resume(user_id=test_user.id, title="Temp", data={})
    db.add(resume)
    db.commit()
    resume_id = resume.id

    response = login(test_user).delete(f"/api/resumes/{resume_id}")

    assert response.status_code == 200
    assert response.json()["success"] is True
    db.expire_all()
    assert db.get(Resume, resume_id) is None


def test_download_renders_escaped_html(login, db, test_user):
    resume = Resume(
        user_id=test_user.id,
        title="My Resume!",
        data={"fullName": "<script>alert(1)</script>", "skills": "Go\nRust"},
    )
    db.add(resume)
    db.commit()

    response = login(test_user).get(f"/api/resumes/{resume.id}/download")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/html")
    assert response.headers["content-disposition"] == 'attachment; filename="My_Resume_.html"'
    assert "<script>alert(1)</script>" not in response.text
    assert "&lt;script&gt;" in response.text
    assert "Go<br>Rust" in response.text


def test_download_uses_stored_content(login, db, test_user):
    resume = Resume(user_id=test_user.id, title="AI", data={}, content="<p>Generated resume</p>")
    db.add(resume)
    db.commit()

    response = login(test_user).get(f"/api/resumes/{resume.id}/download")

    assert "<p>Generated resume</p>" in response.text


def test_migrate_skips_duplicates(login, db, test_user):
    db.add(Resume(user_id=test_user.id, title="Existing", data={"fullName": "Jane Doe"}))
    db.commit()

    response = login(test_user).post("/api/resumes/migrate", json={"resumes": [
        resume_payload(title="Existing", full_name="Jane Doe"),
        resume_payload(title="Existing", full_name="John Roe"),
        resume_payload(title="Brand New", createdAt="2024-05-01T12:00:00Z"),
        {"title": "Broken"},
    ]})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["migratedCount"] == 2
    assert [e["title"] for e in body["errors"]] == ["Broken"]
    assert db.query(Resume).filter(Resume.user_id == test_user.id).count() == 3


def test_migrate_ignores_quota(login, db, test_user):
    add_resumes(db, test_user, 3)

    response = login(test_user).post("/api/resumes/migrate", json={"resumes": [resume_payload(title="Legacy")]})

    assert response.json()["migratedCount"] == 1


def test_migrate_requires_array(login, test_user):
    response = login(test_user).post("/api/resumes/migrate", json={})

    assert response.status_code == 400
