from pydantic import BaseModel
import os
from dotenv import load_dotenv
load_dotenv()  # carga el archivo .env de la raíz

class Settings(BaseModel):
    app_name: str = os.getenv("APP_NAME", "VetClinic")
    env: str = os.getenv("APP_ENV", "dev")
    mongodb_uri: str = os.getenv("MONGODB_URI", "mongodb://localhost:27017")
    db_name: str = os.getenv("DB_NAME", "vetclinic")
    jwt_secret: str = os.getenv("JWT_SECRET", "change-me")
    jwt_expires_hours: int = int(os.getenv("JWT_EXPIRES_HOURS", "8"))
    frontend_base_url: str = os.getenv("FRONTEND_BASE_URL", "http://localhost:5173")
    admin_role: str = os.getenv("ADMIN_ROLE", "Admin")
    login_rate_limit: str = os.getenv("LOGIN_RATE_LIMIT", "10/minute")


_settings: Settings | None = None
def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
