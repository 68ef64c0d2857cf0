import uvicorn

from tryon.config import Settings
from tryon.main import create_app

# --- Configuration (read once, from .env or the environment) ---
settings = Settings.from_env()

# --- FastAPI Application ---
app = create_app(settings)

# --- Run the Application ---
if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=settings.port)
