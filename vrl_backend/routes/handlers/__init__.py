from .directories import register_directories_routes
from .tasks import register_tasks_routes

__all__ = ["register_directories_routes", "register_tasks_routes"]
