import os
import logging
import sys
import uvicorn
from intrachat_backend.settings import settings


class ColoredFormatter(logging.Formatter):
    """Custom formatter that adds colors to log output."""

    green = "\x1b[32m"
    yellow = "\x1b[33m"
    red = "\x1b[31m"
    bold_red = "\x1b[31;1m"
    grey = "\x1b[38;21m"
    orange = "\x1b[38;5;208m"
    reset = "\x1b[0m"

    COLORS = {
        logging.DEBUG: grey,
        logging.INFO: green,
        logging.WARNING: yellow,
        logging.ERROR: red,
        logging.CRITICAL: bold_red
    }

    def format(self, record):
        formatted = super().format(record)

        if not sys.stdout.isatty():
            return formatted

        # "timestamp - LEVEL - name - message"
        parts = formatted.split(' - ', 2)
        if len(parts) < 3:
            return formatted

        log_color = self.COLORS.get(record.levelno, self.grey)
        return f"{self.orange}{parts[0]}{self.reset} - {log_color}{parts[1]}{self.reset} - {parts[2]}"


def setup_logging(level: str) -> logging.Handler:
    """Route all loggers, including uvicorn's, through one colored stdout handler."""
    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(ColoredFormatter(
        '%(asctime)s - %(levelname)-8s - %(name)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    ))
    root.addHandler(handler)
    root.setLevel(getattr(logging, level, logging.INFO))

    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        uv_logger = logging.getLogger(name)
        uv_logger.handlers = [handler]
        uv_logger.propagate = False

    return handler


def configure_websocket_logging():
    """Allow the realtime layer to be more or less verbose than the rest."""
    ws_log_level = os.environ.get("WEBSOCKET_LOG_LEVEL", settings.LOG_LEVEL).upper()

    if ws_log_level not in ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]:
        ws_log_level = "INFO"

    logging.getLogger("intrachat_backend.websocket").setLevel(getattr(logging, ws_log_level))
    return ws_log_level


if __name__ == "__main__":
    setup_logging(settings.LOG_LEVEL)
    ws_level = configure_websocket_logging()

    uvicorn_log_level = os.environ.get("UVICORN_LOG_LEVEL", "info").lower()

    print(f"Starting server with WebSocket log level: {ws_level}, Uvicorn log level: {uvicorn_log_level}")

    uvicorn.run(
        "intrachat_backend.server:app",
        host=os.environ.get("HOST", "0.0.0.0"),
        port=int(os.environ.get("PORT", "8000")),
        log_config=None,  # keep the handlers installed by setup_logging
        log_level=uvicorn_log_level,
        reload=settings.DEBUG_MODE != "production",
        workers=1
    )
