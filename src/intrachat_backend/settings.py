import os
import threading


class BackendSettings:
    _instance = None
    _lock = threading.Lock()

    def __init__(self):
        self.DEBUG_MODE = os.environ.get("DEBUG_MODE","development")
        self.LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

        # Token verification (shared secret with the auth API)
        self.JWT_SECRET = os.environ.get("JWT_SECRET", None)
        self.JWT_ALGORITHM = os.environ.get("JWT_ALGORITHM", "HS256")
        self.JWT_ISSUER = os.environ.get("JWT_ISSUER", "internal-chat-api")
        self.JWT_AUDIENCE = os.environ.get("JWT_AUDIENCE", "internal-chat-app")

        # WebSocket limits
        self.WS_SEND_TIMEOUT = float(os.environ.get("WS_SEND_TIMEOUT", "5.0"))
        self.WS_MAX_CONNECTIONS_PER_USER = int(os.environ.get("WS_MAX_CONNECTIONS_PER_USER", "10"))
        self.WS_MAX_TOTAL_CONNECTIONS = int(os.environ.get("WS_MAX_TOTAL_CONNECTIONS", "10000"))

        # Message validation
        self.MESSAGE_MAX_LENGTH = int(os.environ.get("MESSAGE_MAX_LENGTH", "4000"))

        # Comma separated list of allowed browser origins
        self.CORS_ORIGINS = [
            origin.strip()
            for origin in os.environ.get("CORS_ORIGINS", "http://localhost:3000").split(",")
            if origin.strip()
        ]


    def __new__(cls):
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super(BackendSettings, cls).__new__(cls)
        return cls._instance

settings = BackendSettings()
