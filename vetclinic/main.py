from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from .routers import auth, pets
from .config import get_settings
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
import logging

# Configurar logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

settings = get_settings()

# Configurar rate limiting
limiter = Limiter(key_func=get_remote_address)

app = FastAPI(title=settings.app_name)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Configuración de CORS según entorno
if settings.env == "dev":
    # Desarrollo: más permisivo
    cors_origins = [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]
    cors_regex = r"https?://(localhost|127\.0\.0\.1)(:\d+)?"
    cors_headers = ["Authorization", "Content-Type", "Accept", "Origin", "X-Requested-With"]
else:
    # Producción: solo el frontend configurado
    frontend_url = settings.frontend_base_url
    cors_origins = [frontend_url] if frontend_url else []
    cors_regex = None
    cors_headers = ["Authorization", "Content-Type", "Accept"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_origin_regex=cors_regex,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=cors_headers,
    expose_headers=["Content-Type", "Location"],
)

@app.get("/health")
async def health():
    return {"status": "ok", "env": settings.env}

# Routers
app.include_router(auth.router, prefix="/auth", tags=["auth"])
app.include_router(pets.router, prefix="/pets", tags=["pets"])

# Endpoint de desarrollo (solo en dev)
if settings.env == "dev":
    from .routers import dev
    app.include_router(dev.router, prefix="/dev", tags=["dev"])
    logger.info("Router de desarrollo habilitado en /dev")
