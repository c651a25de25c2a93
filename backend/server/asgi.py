"""
ASGI entry point for the HUD bridge.

`.env` is read before AppConfig so the credential and device selection can
live next to the checkout. Served by uvicorn (see server.main).
"""

from dotenv import find_dotenv, load_dotenv

load_dotenv(find_dotenv(usecwd=True), override=False)

from server.app import create_app  # pylint: disable=wrong-import-position

app = create_app()
