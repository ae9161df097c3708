"""Tests for the HTTP API."""

import asyncio

import pytest

from tachub.server import create_app


@pytest.fixture
def app(session):
	app = create_app(session=session)
	app.config["TESTING"] = True
	yield app
	app.config["TACHUB_WORKER"].stop()


@pytest.fixture
def client(app):
	return app.test_client()


@pytest.fixture
def logged_in(client):
	response = client.post("/api/session/login", json={"password": "pw"})
	assert response.status_code == 200
	return client


class TestSessionRoutes:

	def test_status_before_login(self, client):
		data = client.get("/api/status").get_json()
		assert data["vault_exists"] is False
		assert data["authenticated"] is False
		assert data["crypto"]["iterations"] > 0

	def test_login_creates_vault(self, logged_in):
		data = logged_in.get("/api/status").get_json()
		assert data["vault_exists"] is True
		assert data["authenticated"] is True

	def test_wrong_password(self, logged_in):
		logged_in.post("/api/session/logout")
		response = logged_in.post("/api/session/login", json={"password": "bad"})
		assert response.status_code == 401
		assert response.get_json()["kind"] == "AuthenticationFailed"

	def test_locked_routes(self, client):
		assert client.get("/api/fs/list?path=/").status_code == 401
		assert client.post("/api/vault/save").status_code == 401


class TestFilesystemRoutes:

	def test_list_root(self, logged_in):
		data = logged_in.get("/api/fs/list?path=/").get_json()
		assert [c["name"] for c in data["children"]] == ["logs", "notes", "readme.txt"]

	def test_create_and_read(self, logged_in):
		response = logged_in.post("/api/fs/file", json={"path": "a.txt", "cwd": "/notes", "content": "hi"})
		assert response.status_code == 201
		assert response.get_json()["path"] == "/notes/a.txt"
		data = logged_in.get("/api/fs/read?path=/notes/a.txt").get_json()
		assert data["content"] == "hi"

	def test_create_collision(self, logged_in):
		logged_in.post("/api/fs/file", json={"path": "/notes/a.txt"})
		response = logged_in.post("/api/fs/file", json={"path": "/notes/a.txt"})
		assert response.status_code == 409

	def test_unaddressable(self, logged_in):
		response = logged_in.post("/api/fs/file", json={"path": "/readme.txt/x", "content": "y"})
		assert response.status_code == 400
		assert response.get_json()["kind"] == "PathUnaddressable"

	def test_upsert(self, logged_in):
		assert logged_in.put("/api/fs/file", json={"path": "/notes/n.txt", "content": "1"}).status_code == 200
		assert logged_in.put("/api/fs/file", json={"path": "/notes/n.txt", "content": "2"}).status_code == 200
		assert logged_in.get("/api/fs/read?path=/notes/n.txt").get_json()["content"] == "2"

	def test_mkdir_and_delete(self, logged_in):
		assert logged_in.post("/api/fs/dir", json={"path": "/tmp"}).status_code == 201
		logged_in.post("/api/fs/file", json={"path": "/tmp/x", "content": "y"})
		assert logged_in.delete("/api/fs?path=/tmp").status_code == 200
		assert logged_in.get("/api/fs/list?path=/tmp").status_code == 404
		assert logged_in.get("/api/fs/read?path=/tmp/x").status_code == 404

	def test_delete_missing(self, logged_in):
		assert logged_in.delete("/api/fs?path=/nope").status_code == 404

	def test_cd(self, logged_in):
		assert logged_in.post("/api/fs/cd", json={"path": "/notes"}).get_json()["cwd"] == "/notes"
		assert logged_in.post("/api/fs/cd", json={"path": "/readme.txt"}).status_code == 400


class TestVaultRoutes:

	def test_save_and_reload(self, logged_in):
		logged_in.post("/api/fs/file", json={"path": "/notes/a.txt", "content": "hi"})
		assert logged_in.post("/api/vault/save").get_json()["success"] is True

		logged_in.post("/api/session/logout")
		logged_in.post("/api/session/login", json={"password": "pw"})
		assert logged_in.get("/api/fs/read?path=/notes/a.txt").get_json()["content"] == "hi"

	def test_export(self, logged_in):
		response = logged_in.get("/api/vault/export")
		assert response.status_code == 200
		assert "attachment" in response.headers["Content-Disposition"]
		assert response.get_json()["vfs"]["name"] == "root"

	def test_import(self, logged_in):
		doc = {"vfs": {"name": "root", "type": "dir", "children": [{"name": "x", "type": "file", "content": "1"}]}}
		assert logged_in.post("/api/vault/import", json=doc).status_code == 200
		assert logged_in.get("/api/fs/read?path=/x").get_json()["content"] == "1"

	def test_import_garbage(self, logged_in):
		response = logged_in.post("/api/vault/import", data="nope", content_type="application/json")
		assert response.status_code == 400

	def test_change_password(self, logged_in):
		response = logged_in.post("/api/vault/password", json={"old_password": "pw", "new_password": "pw2"})
		assert response.status_code == 200
		logged_in.post("/api/session/logout")
		assert logged_in.post("/api/session/login", json={"password": "pw"}).status_code == 401
		assert logged_in.post("/api/session/login", json={"password": "pw2"}).status_code == 200


class TestRecordRoutes:

	def test_note_lifecycle(self, logged_in):
		note = logged_in.post("/api/records/notes", json={"title": "Plan"}).get_json()
		assert note["title"] == "Plan"

		updated = logged_in.put(f"/api/records/notes/{note['id']}", json={"content": "step 1"}).get_json()
		assert updated["content"] == "step 1"

		assert len(logged_in.get("/api/records/notes").get_json()) == 1
		assert logged_in.delete(f"/api/records/notes/{note['id']}").status_code == 200
		assert logged_in.get("/api/records/notes").get_json() == []

	def test_characters(self, logged_in):
		char = logged_in.post("/api/records/characters", json={"name": "Vex"}).get_json()
		assert char["id"]
		assert logged_in.get("/api/records/characters").get_json()[0]["name"] == "Vex"

	def test_unknown_kind(self, logged_in):
		assert logged_in.get("/api/records/spells").status_code == 404

	def test_delete_missing(self, logged_in):
		assert logged_in.delete("/api/records/notes/nope").status_code == 404

	def test_record_changes_are_saved(self, app, logged_in, store):
		logged_in.post("/api/records/characters", json={"name": "Ada"})
		logged_in.post("/api/records/images", json={"url": "data:image/png;base64,AA", "prompt": "dusk"})
		note = logged_in.post("/api/records/notes", json={"title": "Plan"}).get_json()
		logged_in.put(f"/api/records/notes/{note['id']}", json={"content": "step 1"})

		app.config["TACHUB_WORKER"].stop()
		loaded = asyncio.run(store.load("pw"))
		assert [c.name for c in loaded.characters] == ["Ada"]
		assert loaded.vault.images[0].prompt == "dusk"
		assert loaded.vault.notes[0].content == "step 1"

	def test_record_delete_is_saved(self, app, logged_in, store):
		char = logged_in.post("/api/records/characters", json={"name": "Ada"}).get_json()
		logged_in.delete(f"/api/records/characters/{char['id']}")

		app.config["TACHUB_WORKER"].stop()
		assert asyncio.run(store.load("pw")).characters == []


class TestStatus:

	def test_save_count_and_cwd(self, logged_in):
		first = logged_in.post("/api/vault/save").get_json()["saves_completed"]
		second = logged_in.post("/api/vault/save").get_json()["saves_completed"]
		assert second == first + 1

		logged_in.post("/api/fs/cd", json={"path": "/notes"})
		data = logged_in.get("/api/status").get_json()
		assert data["cwd"] == "/notes"
		assert data["saving"] is False
		assert data["last_save_error"] is None

	def test_relative_paths_use_session_cwd(self, logged_in):
		logged_in.post("/api/fs/cd", json={"path": "/notes"})
		response = logged_in.post("/api/fs/file", json={"path": "b.txt", "content": "x"})
		assert response.get_json()["path"] == "/notes/b.txt"
		assert logged_in.get("/api/fs/read?path=b.txt").get_json()["content"] == "x"
