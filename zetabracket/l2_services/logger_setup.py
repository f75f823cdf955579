import logging
import os
from datetime import datetime, timezone

FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

def setup_logging(level: str = "INFO", log_dir: str | None = None) -> logging.Logger:
    log = logging.getLogger("zetabracket")
    log.setLevel(getattr(logging, str(level).upper(), logging.INFO))

    if not log.handlers:
        fmt = logging.Formatter(FORMAT)
        sh = logging.StreamHandler()
        sh.setFormatter(fmt)
        log.addHandler(sh)

        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
            ts = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
            fh = logging.FileHandler(os.path.join(log_dir, f"zetabracket_{ts}.log"), encoding="utf-8")
            fh.setFormatter(fmt)
            log.addHandler(fh)

    return log
