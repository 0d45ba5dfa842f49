"""
Permission table for RPC methods.
Controls which ``object.method`` names callers may invoke.
"""

from __future__ import annotations

import json
import logging
from enum import Enum
from pathlib import Path
from typing import Dict, Iterable, List

logger = logging.getLogger(__name__)


class Permission(str, Enum):
    DISABLED = "disabled"  # Method cannot be called
    ALLOWED = "allowed"  # Method can be called


class PermissionManager:
    def __init__(self, config_file: Path):
        self.config_file = config_file
        self.permissions: Dict[str, Permission] = {}
        self.load()

    def load(self):
        if self.config_file.exists():
            data = json.loads(self.config_file.read_text())
            self.permissions = {}
            for name, value in data.items():
                try:
                    self.permissions[name] = Permission(value)
                except ValueError:
                    logger.warning(f"Ignoring unknown permission {value!r} for {name}")
        else:
            self.permissions = {}
            self.save()

    def save(self):
        self.config_file.parent.mkdir(parents=True, exist_ok=True)
        self.config_file.write_text(
            json.dumps({k: v.value for k, v in self.permissions.items()}, indent=2)
        )

    def seed(self, method_names: Iterable[str]):
        """Record every known method as allowed unless already configured."""
        changed = False
        for name in method_names:
            if name not in self.permissions:
                self.permissions[name] = Permission.ALLOWED
                changed = True
        if changed:
            self.save()

    def check(self, method_name: str) -> Permission:
        """Methods missing from the table are allowed."""
        return self.permissions.get(method_name, Permission.ALLOWED)

    def set_permission(self, method_name: str, permission: Permission, auto_save: bool = True):
        self.permissions[method_name] = permission
        if auto_save:
            self.save()

    def get_all(self) -> Dict[str, str]:
        return {k: v.value for k, v in self.permissions.items()}

    def get_disabled(self) -> List[str]:
        return [name for name, perm in self.permissions.items() if perm == Permission.DISABLED]
