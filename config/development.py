import os

SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")

# Bearer tokens (HS256)
JWT_SECRET = os.getenv("JWT_SECRET", "dev-jwt-secret")
JWT_EXPIRES_DAYS = int(os.getenv("JWT_EXPIRES_DAYS", "7"))

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "markit"),
}

DEBUG = True
LOG_LEVEL = os.getenv("MARKIT_LOG_LEVEL", "DEBUG")

API_PREFIX = os.getenv("API_PREFIX", "/api")
CORS_ORIGINS = os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")

# (capacity, refill tokens per second): 100 requests per 15 minutes
RATE_LIMIT = (int(os.getenv("RATE_LIMIT_MAX", "100")), int(os.getenv("RATE_LIMIT_MAX", "100")) / 900)

# If enabled, app will apply schema.sql on startup (idempotent: CREATE IF NOT EXISTS)
AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "1")))
# Optional: also create the admin account on startup
AUTO_SEED_DB = bool(int(os.getenv("AUTO_SEED_DB", "0")))

ADMIN_EMAIL = os.getenv("ADMIN_EMAIL", "admin@markit.local")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "Admin123")
