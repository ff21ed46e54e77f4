import logging
import sys

NOISY_LOGGERS = ("websockets", "assemblyai", "numba", "httpx")


def setup_logging(level: str = "INFO"):
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    # Keep third-party chatter (numba JIT, websocket frames) out of the session logs
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
