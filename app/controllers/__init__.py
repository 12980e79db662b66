"""FastAPI routers acting as controllers in the MVC architecture."""

from . import burnout, cbt, media

__all__ = ["burnout", "cbt", "media"]
