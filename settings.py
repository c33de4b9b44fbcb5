"""App settings.

Flask loads this module on startup via ``app.config.from_pyfile(...)``.

Values here are defaults; `config.Config` applies environment overrides.
"""

# Single source of truth for app configuration.
SETTINGS: dict[str, object] = {
    # Flask
    "SECRET_KEY": "dev-not-secret",
    # Logging
    "LOG_LEVEL": "INFO",
    # Auth: HS256 secret used to verify bearer tokens on /api/v2.
    "AUTH_JWT_SECRET": "dev-jwt-secret-change-me-before-deploying",
    "AUTH_JWT_ALGORITHM": "HS256",
    # Universal API
    "UNIVERSAL_MAX_ROWS": 100,
    # Stored procedures listed here behave as "not installed".
    "DISABLED_PROCEDURES": [],
    # Edge functions (P2P matching, anomaly detection, payment batching).
    # Empty base URL means edge calls fail with EdgeFunctionError.
    "EDGE_FUNCTION_BASE_URL": "",
    "EDGE_FUNCTION_SERVICE_KEY": "",
    "EDGE_FUNCTION_TIMEOUT_SECONDS": 30.0,
    # MCP servers fall back to this org when a tool call omits organization_id.
    "DEFAULT_ORGANIZATION_ID": "",
}

# Optional convenience exports (mirrors earlier style).
SECRET_KEY = SETTINGS["SECRET_KEY"]
LOG_LEVEL = SETTINGS["LOG_LEVEL"]
AUTH_JWT_SECRET = SETTINGS["AUTH_JWT_SECRET"]
UNIVERSAL_MAX_ROWS = SETTINGS["UNIVERSAL_MAX_ROWS"]
