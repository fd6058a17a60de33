from . import (
    auth,
    payroll,
    purchases,
    staff,
)

__all__ = [
    "auth",
    "payroll",
    "purchases",
    "staff",
]
