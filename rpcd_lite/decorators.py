"""
Decorators for RPC action handlers.
"""

from functools import wraps
import logging
from typing import Callable

logger = logging.getLogger(__name__)


def audit(method_name: str):
    """
    Log every invocation of a side-effecting handler for the audit trail.

    Args:
        method_name: ``object.method`` name of the action being audited
    """
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(self, *args, **kwargs):
            logger.info(
                f"[AUDIT] Action '{method_name}' invoked",
                extra={
                    "method": method_name,
                    "method_kwargs": str(kwargs)[:100],
                },
            )
            try:
                result = func(self, *args, **kwargs)
            except Exception as e:
                logger.error(f"[AUDIT] Action '{method_name}' failed: {e}")
                raise
            logger.info(f"[AUDIT] Action '{method_name}' succeeded")
            return result

        return wrapper

    return decorator
