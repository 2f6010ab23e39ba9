# stocksync/utils/logger.py
import logging
import os
import sys

LEVELS = {"ERROR": 40, "WARN": 30, "INFO": 20, "DEBUG": 10, "NONE": 100}
LOG_LEVEL = LEVELS.get(os.getenv("LOG_LEVEL", "INFO").upper(), 20)

logger = logging.getLogger("stocksync")
logger.setLevel(LOG_LEVEL)

if not logger.handlers:
    _sh = logging.StreamHandler(sys.stdout)
    _sh.setFormatter(logging.Formatter("[%(asctime)s][%(levelname)s] %(message)s", "%H:%M:%S"))
    logger.addHandler(_sh)


def debug(msg): logger.debug(msg)
def info(msg):  logger.info(msg)
def warn(msg):  logger.warning(msg)
def error(msg): logger.error(msg)
