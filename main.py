"""
Entrypoint for `uvicorn main:app`.
Builds the FastAPI app from server.py; configure it through FILESERVER_* env vars.
"""

from fileserver_backend.config import context_from_env
from server import create_app, main

app = create_app(context_from_env())

__all__ = ["app", "main"]

if __name__ == "__main__":
    main()
