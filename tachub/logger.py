import logging, sys

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s"


def setup_logging(level = logging.INFO, stream = None):
	"""Configure the root logger once; later calls only change the level."""
	if isinstance(level, str):
		level = logging.getLevelName(level.upper())

	root_logger = logging.getLogger()
	root_logger.setLevel(level)

	if any(getattr(h, "_tachub", False) for h in root_logger.handlers):
		return

	handler = logging.StreamHandler(stream or sys.stdout)
	handler._tachub = True
	handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%H:%M:%S"))
	root_logger.addHandler(handler)

	# Werkzeug logs every request at INFO
	logging.getLogger("werkzeug").setLevel(max(level, logging.WARNING))
