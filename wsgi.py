"""WSGI entry point (e.g., gunicorn wsgi:app)."""
import os

from app import create_app
from utils.retention_sweeper import start_retention_sweeper

app = create_app()

# The flask CLI discovers and imports this module too; one-off commands skip the sweeper.
if os.getenv("FLASK_RUN_FROM_CLI") != "true":
    start_retention_sweeper(app)


if __name__ == "__main__":
    port = int(os.getenv("PORT", 5000))
    app.run(host="0.0.0.0", port=port, use_reloader=False)
