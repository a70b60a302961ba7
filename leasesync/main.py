# leasesync/main.py
from .entrypoints.fastapi_app import create_app

# uvicorn leasesync.main:app
app = create_app()
