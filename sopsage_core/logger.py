import logging, json, sys, time, os

LEVEL_ENV = "SOPSAGE_LOG_LEVEL"

_FIELDS = {"ts": "%(asctime)s", "level": "%(levelname)s", "name": "%(name)s", "msg": "%(message)s"}


def _level_from_env():
    return getattr(logging, os.getenv(LEVEL_ENV, "INFO").upper(), logging.INFO)


def _json_formatter() -> logging.Formatter:
    formatter = logging.Formatter(fmt=json.dumps(_FIELDS), datefmt="%Y-%m-%dT%H:%M:%SZ")
    formatter.converter = time.gmtime
    return formatter


def get_logger(name="SOPSAge", level=None, to_file=None):
    """JSON-lines logger for the keyring, config and tool layers.

    `level` falls back to $SOPSAGE_LOG_LEVEL. Handlers are attached once per
    logger name; later calls only adjust the level.
    """
    logger = logging.getLogger(name)
    logger.setLevel(_level_from_env() if level is None else level)
    if logger.handlers:
        return logger

    formatter = _json_formatter()
    stream = logging.StreamHandler(sys.stdout)
    stream.setFormatter(formatter)
    logger.addHandler(stream)

    if to_file:
        os.makedirs(os.path.dirname(to_file) or ".", exist_ok=True)
        file_handler = logging.FileHandler(to_file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)
    return logger
