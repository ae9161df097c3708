import asyncio
import logging
import threading
from typing import Optional

from flask import Flask, jsonify

from .config import ConsoleConfig
from .errors import (AlreadyExists, AuthenticationFailed, InvalidDocument, KindMismatch,
	MediumUnavailable, NotAuthenticated, NotFound, PathUnaddressable, RecordNotFound, TachubError)
from .session import ConsoleSession
from .storage import FileMedium
from .vault import VaultStore

logger = logging.getLogger(__name__)

ERROR_STATUS = {
	NotFound: 404,
	RecordNotFound: 404,
	AlreadyExists: 409,
	PathUnaddressable: 400,
	KindMismatch: 400,
	InvalidDocument: 400,
	AuthenticationFailed: 401,
	NotAuthenticated: 401,
	MediumUnavailable: 503,
}


class SessionWorker:
	"""
	Runs the session on its own event loop in a daemon thread.
	Request threads hand work over with `run` / `call` and wait for the
	result, so only this one thread ever touches the session state.
	"""

	def __init__(self, session: ConsoleSession):
		self.session = session
		self._loop = asyncio.new_event_loop()
		self._thread: Optional[threading.Thread] = None
		self._periodic: Optional[asyncio.Task] = None

	@property
	def running(self) -> bool:
		return self._thread is not None and self._thread.is_alive()

	def start(self):
		if self.running:
			return
		self._thread = threading.Thread(target=self._run, name="tachub-session", daemon=True)
		self._thread.start()

		interval = self.session.config.autosave_interval
		if interval > 0:
			self._periodic = self.call(self._loop.create_task, self.session.periodic_save(interval))
			logger.debug(f"Periodic vault save every {interval}s")
		logger.debug("Session worker started")

	def _run(self):
		asyncio.set_event_loop(self._loop)
		self._loop.run_forever()

	def run(self, coro, timeout: Optional[float] = None):
		"""Run a coroutine on the session loop and return its result."""
		return asyncio.run_coroutine_threadsafe(coro, self._loop).result(timeout)

	def call(self, fn, *args, **kwargs):
		"""Run a plain callable on the session loop."""
		async def invoke():
			return fn(*args, **kwargs)
		return self.run(invoke())

	def stop(self):
		if not self.running:
			return
		self.run(self._shutdown())
		self._loop.call_soon_threadsafe(self._loop.stop)
		self._thread.join()
		self._thread = None
		self._loop.close()
		logger.debug("Session worker stopped")

	async def _shutdown(self):
		if self._periodic is not None:
			self._periodic.cancel()
			try:
				await self._periodic
			except asyncio.CancelledError:
				pass
			self._periodic = None
		await self.session.flush()


def build_session(config: ConsoleConfig) -> ConsoleSession:
	store = VaultStore(FileMedium(config.storage_path), slot_key=config.slot_key)
	return ConsoleSession(store, config)


def create_app(config: Optional[ConsoleConfig] = None, session: Optional[ConsoleSession] = None) -> Flask:
	"""Create and configure the Flask application."""
	if config is None:
		config = session.config if session is not None else ConsoleConfig()
	if session is None:
		session = build_session(config)

	worker = SessionWorker(session)
	worker.start()

	app = Flask(__name__)
	app.config["TACHUB_CONFIG"] = config
	app.config["TACHUB_WORKER"] = worker

	from .routes import api_bp
	app.register_blueprint(api_bp, url_prefix="/api")

	@app.errorhandler(TachubError)
	def handle_tachub_error(e: TachubError):
		status = 500
		for cls in type(e).__mro__:
			if cls in ERROR_STATUS:
				status = ERROR_STATUS[cls]
				break
		if status >= 500:
			logger.error(f"Request failed: {e}")
		return jsonify({"error": str(e), "kind": type(e).__name__}), status

	logger.info(f"Tactical Hub server initialized (storage: {config.storage_path})")
	return app


def run_server(config: Optional[ConsoleConfig] = None, session: Optional[ConsoleSession] = None):
	"""Run the web server until interrupted."""
	if config is None:
		config = ConsoleConfig()

	app = create_app(config, session)
	logger.info(f"Starting Tactical Hub server on http://{config.host}:{config.port}")
	try:
		app.run(
			host=config.host,
			port=config.port,
			debug=config.debug,
			use_reloader=False,
			threaded=True
		)
	finally:
		app.config["TACHUB_WORKER"].stop()
