import os

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./astra.db")
SQL_ECHO = os.getenv("SQL_ECHO", "false").lower() in ("1", "true", "yes")

# the newest OpenAI model is "gpt-4o"; override with OPENAI_MODEL
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o")
OPENAI_TEMPERATURE = float(os.getenv("OPENAI_TEMPERATURE", "0.7"))

GITHUB_API_URL = os.getenv("GITHUB_API_URL", "https://api.github.com")

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
