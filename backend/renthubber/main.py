# renthubber/main.py
# uvicorn renthubber.main:app --reload
from __future__ import annotations

from .entrypoints.fastapi_app import create_app

app = create_app()
