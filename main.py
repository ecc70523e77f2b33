import uvicorn

from app.core.config import get_settings
from app.main import app

__all__ = ["app"]


if __name__ == "__main__":
    uvicorn.run("app.main:app", host="0.0.0.0", port=get_settings().PORT)
