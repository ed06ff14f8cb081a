# serviexpress/core/config.py
import os

# Environment
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./serviexpress.db")
SECRET_KEY = os.getenv("SECRET_KEY", "change-me-serviexpress-secret")
SESSION_MAX_AGE = int(os.getenv("SESSION_MAX_AGE", "86400"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# optional bootstrap administrator, created on startup when both are set
ADMIN_EMAIL = os.getenv("ADMIN_EMAIL")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD")

# external catalogue used by /servicio/auto/{tipo}
SERVICES_API_URL = os.getenv("SERVICES_API_URL", "https://api.ejemplo.com/servicios")
SERVICES_API_TIMEOUT = float(os.getenv("SERVICES_API_TIMEOUT", "5"))

# page sizes
HOME_PAGE_SIZE = 12
LIST_PAGE_SIZE = 10
