"""CLI command package"""

from .start import start
from .stop import stop

__all__ = ["start", "stop"]
