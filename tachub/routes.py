import json
import logging
from datetime import date
from functools import wraps

from flask import Blueprint, Response, current_app, jsonify, request

from .crypto import VaultCodec
from .errors import InvalidDocument
from .models import VirtualNode
from .session import RECORD_KINDS

logger = logging.getLogger(__name__)

api_bp = Blueprint("api", __name__)


def get_worker():
	return current_app.config["TACHUB_WORKER"]


def get_session():
	return get_worker().session


def require_session(f):
	"""Decorator to require an unlocked session."""
	@wraps(f)
	def decorated(*args, **kwargs):
		session = get_session()
		if not get_worker().call(lambda: session.authenticated):
			return jsonify({"error": "Session is locked"}), 401
		return f(*args, **kwargs)
	return decorated


def node_summary(node: VirtualNode) -> dict:
	return {
		"name": node.name,
		"type": node.kind.value,
		"permissions": node.permissions,
		"owner": node.owner,
		"size": len(node.content) if node.is_file else len(node.children),
	}


def request_path(data: dict = None, default: str = "."):
	"""Resolve the `path` (and optional `cwd`) of a request against the session."""
	source = data if data is not None else request.args
	return get_worker().call(get_session().resolve, source.get("path") or default, source.get("cwd"))


def persisted(fn, *args):
	"""Apply a record change on the session loop, then save the vault."""
	session = get_session()

	async def apply():
		result = fn(*args)
		await session.persist()
		return result
	return get_worker().run(apply())


def collect_status(session) -> dict:
	return {
		"vault_exists": session.store.has_vault(),
		"authenticated": session.authenticated,
		"saving": session.store.saving,
		"last_save_error": session.last_save_error,
		"vfs_version": session.vfs.version,
		"cwd": session.cwd,
		"crypto": VaultCodec.get_config_for_client(),
	}


# ============ Session ============

@api_bp.route("/status", methods=["GET"])
def status():
	worker = get_worker()
	return jsonify(worker.call(collect_status, worker.session))


@api_bp.route("/session/login", methods=["POST"])
def login():
	data = request.get_json(silent=True) or {}
	worker = get_worker()
	worker.run(worker.session.login(data.get("password") or ""))
	return jsonify({"success": True})


@api_bp.route("/session/logout", methods=["POST"])
def logout():
	worker = get_worker()
	worker.run(worker.session.logout())
	return jsonify({"success": True})


# ============ Vault ============

@api_bp.route("/vault/save", methods=["POST"])
@require_session
def save_vault():
	session = get_session()

	async def save():
		await session.persist()
		return session.store.saves_completed
	return jsonify({"success": True, "saves_completed": get_worker().run(save())})


@api_bp.route("/vault/password", methods=["POST"])
@require_session
def change_password():
	data = request.get_json(silent=True) or {}
	worker = get_worker()
	worker.run(worker.session.change_password(data.get("old_password") or "", data.get("new_password") or ""))
	return jsonify({"success": True})


@api_bp.route("/vault/export", methods=["GET"])
@require_session
def export_vault():
	document = get_worker().call(get_session().export_document)
	filename = f"tactical-hub-backup-{date.today().isoformat()}.json"
	return Response(
		json.dumps(document, indent=2),
		mimetype="application/json",
		headers={"Content-Disposition": f"attachment; filename={filename}"}
	)


@api_bp.route("/vault/import", methods=["POST"])
@require_session
def import_vault():
	document = request.get_json(silent=True)
	if document is None:
		raise InvalidDocument("Invalid import file.")
	worker = get_worker()
	worker.run(worker.session.import_document(document))
	return jsonify({"success": True})


# ============ Filesystem ============

@api_bp.route("/fs/list", methods=["GET"])
@require_session
def fs_list():
	path = request_path()
	children = get_worker().call(get_session().vfs.list, path)
	if children is None:
		return jsonify({"error": "Not a directory", "path": path}), 404
	return jsonify({"path": path, "children": [node_summary(c) for c in children]})


@api_bp.route("/fs/read", methods=["GET"])
@require_session
def fs_read():
	path = request_path()
	content = get_worker().call(get_session().vfs.read_file, path)
	if content is None:
		return jsonify({"error": "No such file", "path": path}), 404
	return jsonify({"path": path, "content": content})


@api_bp.route("/fs/file", methods=["POST", "PUT"])
@require_session
def fs_write_file():
	data = request.get_json(silent=True) or {}
	path = request_path(data, default="")
	vfs = get_session().vfs
	operation = vfs.create_file if request.method == "POST" else vfs.update_file
	get_worker().call(operation, path, str(data.get("content", "")))
	return jsonify({"success": True, "path": path}), 201 if request.method == "POST" else 200


@api_bp.route("/fs/dir", methods=["POST"])
@require_session
def fs_make_dir():
	data = request.get_json(silent=True) or {}
	path = request_path(data, default="")
	get_worker().call(get_session().vfs.create_directory, path)
	return jsonify({"success": True, "path": path}), 201


@api_bp.route("/fs", methods=["DELETE"])
@require_session
def fs_delete():
	path = request_path(default="")
	get_worker().call(get_session().vfs.delete, path)
	return jsonify({"success": True, "path": path})


@api_bp.route("/fs/cd", methods=["POST"])
@require_session
def fs_change_directory():
	data = request.get_json(silent=True) or {}
	cwd = get_worker().call(get_session().change_directory, data.get("path") or "/")
	return jsonify({"cwd": cwd})


# ============ Records ============

def check_kind(kind: str):
	if kind not in RECORD_KINDS:
		return jsonify({"error": f"Unknown record kind: {kind}"}), 404
	return None


@api_bp.route("/records/<kind>", methods=["GET"])
@require_session
def list_records(kind: str):
	error = check_kind(kind)
	if error:
		return error
	session = get_session()
	return jsonify(get_worker().call(lambda: [r.to_dict() for r in session.records_of(kind)]))


@api_bp.route("/records/<kind>", methods=["POST"])
@require_session
def add_record(kind: str):
	error = check_kind(kind)
	if error:
		return error
	data = request.get_json(silent=True) or {}
	session = get_session()
	return jsonify(persisted(lambda: session.add_record(kind, data).to_dict())), 201


@api_bp.route("/records/notes/<record_id>", methods=["PUT"])
@require_session
def update_note(record_id: str):
	data = request.get_json(silent=True) or {}
	session = get_session()
	note = persisted(lambda: session.update_note(record_id, data.get("content"), data.get("title")).to_dict())
	return jsonify(note)


@api_bp.route("/records/<kind>/<record_id>", methods=["DELETE"])
@require_session
def delete_record(kind: str, record_id: str):
	error = check_kind(kind)
	if error:
		return error
	persisted(get_session().delete_record, kind, record_id)
	return jsonify({"success": True})
