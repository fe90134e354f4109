import logging
import sys


def setup_logging(verbosity: int = 0) -> None:
    level = logging.INFO
    if verbosity >= 1:
        level = logging.DEBUG

    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        stream=sys.stdout,
    )
    # -v 한 번으로는 google 클라이언트의 DEBUG 로그까지 내보내지 않는다.
    if verbosity < 2:
        logging.getLogger("google").setLevel(logging.INFO)
        logging.getLogger("urllib3").setLevel(logging.INFO)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
