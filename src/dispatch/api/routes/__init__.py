"""Route group exports."""

from . import health, schedule, vehicles

__all__ = ["health", "schedule", "vehicles"]
