"""API routers for Asset Hub."""

from . import approvals
from . import action_configs
from . import roles
from . import borrows
from . import health

__all__ = [
    "approvals",
    "action_configs",
    "roles",
    "borrows",
    "health",
]
