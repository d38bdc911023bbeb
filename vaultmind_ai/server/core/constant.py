"""Server-wide constants."""

PROJECT_NAME = "VaultMind-AI"
API_V1_STR = "/api/v1"
