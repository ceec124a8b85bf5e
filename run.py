"""Local development entry point.

Usage:
    python run.py

Reads .env from the working directory, then serves the API on $PORT
(default 3001).
"""

from dotenv import load_dotenv

load_dotenv()  # Load .env before anything else

from contact_api import create_app  # noqa: E402

app = create_app()

if __name__ == "__main__":
    app.run(debug=app.debug, host="0.0.0.0", port=app.config["PORT"])
