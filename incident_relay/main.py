from dotenv import load_dotenv

from incident_relay.api.app import create_app
from incident_relay.core.logging import setup_logging

# LOG_LEVEL and friends may live in .env, which Settings reads but logging does not.
load_dotenv()
setup_logging()

# Default app instance for uvicorn (uvicorn incident_relay.main:app)
app = create_app()
