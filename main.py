import argparse
import asyncio
import getpass
import logging
from tachub.config import ConsoleConfig
from tachub.errors import TachubError
from tachub.logger import setup_logging
from tachub.server import build_session, run_server


def parse_args(argv=None):
	parser = argparse.ArgumentParser(description="Tactical Hub operator console")
	parser.add_argument("--config", default=None, help="JSON config file")
	parser.add_argument("--storage", default=None, help="Vault storage file (overrides config)")
	parser.add_argument("--password", "-p", default=None, help="Vault password (prompted if omitted)")
	parser.add_argument("--export", dest="export_path", nargs="?", const="", default=None,
						help="Write a plaintext backup (default: dated file in the backup dir)")
	parser.add_argument("--import", dest="import_path", default=None, help="Replace all data with a backup file")
	parser.add_argument("--new-password", default=None, help="Re-encrypt the vault under a new password")
	parser.add_argument("--host", default=None, help="Server host")
	parser.add_argument("--port", type=int, default=None, help="Server port")
	parser.add_argument("--no-server", action="store_true", help="Don't start web server")
	parser.add_argument("--debug", action="store_true", help="Enable debug logging")
	return parser.parse_args(argv)


def load_config(args) -> ConsoleConfig:
	config = ConsoleConfig.load(args.config)
	if args.storage:
		config.storage_path = args.storage
	if args.host:
		config.host = args.host
	if args.port:
		config.port = args.port
	if args.debug:
		config.debug = True
	return config


async def run_maintenance(session, args):
	"""Unlock the vault and run the one-shot export/import/password jobs."""
	password = args.password or getpass.getpass("Vault password: ")
	await session.login(password)
	logging.info("Vault unlocked")

	if args.import_path:
		await session.import_from(args.import_path)
		logging.info(f"Imported {args.import_path}")

	if args.export_path is not None:
		path = session.export_to(args.export_path or None)
		logging.info(f"Backup written to {path}")

	if args.new_password:
		await session.change_password(password, args.new_password)
		logging.info("Password changed")

	await session.flush()


def main(argv=None):
	args = parse_args(argv)
	setup_logging(level=logging.DEBUG if args.debug else logging.INFO)

	config = load_config(args)
	if not config.validate():
		return 2

	session = build_session(config)
	wants_jobs = args.export_path is not None or args.import_path or args.new_password
	try:
		if wants_jobs:
			asyncio.run(run_maintenance(session, args))
			# Jobs leave the session unlocked in another loop; the server gets a fresh one.
			session = build_session(config)

		if not args.no_server:
			logging.info("Press Ctrl+C to stop")
			run_server(config, session)
	except KeyboardInterrupt:
		logging.info("Shutting down...")
	except TachubError as e:
		logging.error(f"{type(e).__name__}: {e}")
		return 1
	except Exception as e:
		logging.critical(f"Fatal error: {e}", exc_info=True)
		return 1
	return 0


if __name__ == "__main__":
	raise SystemExit(main())
