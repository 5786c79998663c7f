import logging
import os

from flask_cors import CORS

from . import create_app

app = create_app(os.getenv("APP_ENV", "development"))

logging.basicConfig(
    level=getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

# Enable CORS for API routes
CORS(app, resources={r"/api/*": {"origins": str(app.config.get("CORS_ORIGINS", "*")).split(",")}})


if __name__ == "__main__":
    app.run(
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "5000")),
        debug=app.config.get("DEBUG", False),
    )
