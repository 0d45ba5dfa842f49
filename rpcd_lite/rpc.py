"""
JSON-RPC dispatch for rpcd.
Exposes the system and network objects with ubus-style ``list``/``call`` verbs.
"""

from __future__ import annotations

import fnmatch
import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

from .context import RpcdContext
from .exceptions import (
    ErrorCode,
    MethodNotFoundError,
    NotFoundError,
    PermissionDeniedError,
    RpcdError,
    format_exception_details,
)
from .network import NetworkCollector
from .permissions import Permission
from .schema import Field, FieldType, Schema, require, required_names, signature, validate
from .system import SystemCollector

logger = logging.getLogger(__name__)

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602


class RpcMethod:
    def __init__(
        self,
        obj: str,
        name: str,
        description: str,
        handler: Callable[..., Dict[str, Any]],
        schema: Schema = (),
    ):
        self.obj = obj
        self.name = name
        self.description = description
        self.handler = handler
        self.schema = schema

    @property
    def full_name(self) -> str:
        return f"{self.obj}.{self.name}"

    def signature(self) -> Dict[str, str]:
        return signature(self.schema)


class RpcHandler:
    def __init__(self, context: RpcdContext):
        self.context = context
        self.objects: Dict[str, Dict[str, RpcMethod]] = {}
        self.system = SystemCollector(context)
        self.network = NetworkCollector(context)
        self._register_methods()
        if context.permission_manager:
            context.permission_manager.seed(self.method_names())

    def _register_methods(self):
        self.register_method("system", "syslog", "Read the system log", self.system.syslog)
        self.register_method("system", "dmesg", "Read the kernel ring buffer", self.system.dmesg)
        self.register_method(
            "system", "process_list", "Snapshot the process table", self.system.process_list
        )
        self.register_method(
            "system",
            "process_signal",
            "Send a signal to a process",
            self.system.process_signal,
            (
                Field("pid", FieldType.INT, required=True),
                Field("signal", FieldType.INT, required=True),
            ),
        )
        self.register_method(
            "system", "init_list", "List init scripts and their priorities", self.system.init_list
        )
        self.register_method(
            "system",
            "init_action",
            "Start, stop, reload, restart, enable or disable an init script",
            self.system.init_action,
            (
                Field("name", FieldType.STRING, required=True),
                Field("action", FieldType.STRING, required=True),
            ),
        )
        self.register_method(
            "system", "sshkeys_get", "Read the authorized SSH keys", self.system.sshkeys_get
        )
        self.register_method(
            "system",
            "sshkeys_set",
            "Replace the authorized SSH keys",
            self.system.sshkeys_set,
            (Field("keys", FieldType.ARRAY, required=True),),
        )

        self.register_method(
            "network", "conntrack_count", "Connection tracking usage", self.network.conntrack_count
        )
        self.register_method(
            "network", "conntrack_table", "Tracked connections", self.network.conntrack_table
        )
        self.register_method("network", "arp_table", "Kernel ARP table", self.network.arp_table)
        self.register_method("network", "dhcp_leases", "DHCPv4 leases", self.network.dhcp_leases)
        self.register_method("network", "dhcp6_leases", "DHCPv6 leases", self.network.dhcp6_leases)
        self.register_method("network", "routes", "IPv4 routing table", self.network.routes)
        self.register_method("network", "routes6", "IPv6 routing table", self.network.routes6)

    def register_method(
        self,
        obj: str,
        name: str,
        description: str,
        handler: Callable[..., Dict[str, Any]],
        schema: Schema = (),
    ):
        self.objects.setdefault(obj, {})[name] = RpcMethod(obj, name, description, handler, schema)

    def method_names(self) -> List[str]:
        return [m.full_name for methods in self.objects.values() for m in methods.values()]

    def list_objects(self, pattern: Optional[str] = None) -> Dict[str, Dict[str, Dict[str, str]]]:
        return {
            obj: {name: method.signature() for name, method in methods.items()}
            for obj, methods in sorted(self.objects.items())
            if pattern is None or fnmatch.fnmatchcase(obj, pattern)
        }

    def call(self, obj: str, name: str, arguments: Any = None) -> Dict[str, Any]:
        """
        Execute ``obj.name`` with ``arguments``.
        Raises RpcdError with the status to report to the caller.
        """
        methods = self.objects.get(obj)
        if methods is None:
            raise NotFoundError(f"Object not found: {obj}", details={"object": obj})
        method = methods.get(name)
        if method is None:
            raise MethodNotFoundError(
                f"Method not found: {obj}.{name}",
                details={"object": obj, "method": name, "available": sorted(methods)},
            )

        permission_manager = self.context.permission_manager
        if permission_manager and permission_manager.check(method.full_name) == Permission.DISABLED:
            logger.warning(f"Permission denied for method '{method.full_name}': disabled")
            raise PermissionDeniedError(
                f"Method '{method.full_name}' is disabled",
                details={"method": method.full_name},
            )

        args = validate(arguments or {}, method.schema)
        require(args, required_names(method.schema))

        try:
            logger.debug(f"Executing {method.full_name} with args: {sorted(args)}")
            result = method.handler(**args)
            logger.debug(f"{method.full_name} completed successfully")
            return result
        except RpcdError:
            raise
        except OSError as e:
            raise RpcdError.from_os_error(e) from e
        except Exception as e:
            logger.exception(f"Unhandled error executing {method.full_name}")
            raise RpcdError(
                f"Method execution failed: {e}",
                code=ErrorCode.UNKNOWN_ERROR,
                details=format_exception_details(e),
                cause=e,
            )

    def _json_error(self, msg_id: Any, code: int, message: str, data: Any | None = None) -> Dict[str, Any]:
        error = {"code": code, "message": message}
        if data is not None:
            error["data"] = data
        return {"jsonrpc": "2.0", "id": msg_id, "error": error}

    def _call_params(self, method: str, params: Any) -> Optional[Tuple[str, str, Any]]:
        """Extract (object, method, args) from a ``call`` or ``object.method`` request."""
        if method != "call":
            obj, _, name = method.rpartition(".")
            if not obj:
                return None
            return obj, name, params if params is not None else {}
        if isinstance(params, list) and len(params) >= 2:
            args = params[2] if len(params) > 2 else {}
            return params[0], params[1], args
        if isinstance(params, dict) and "object" in params and "method" in params:
            return params["object"], params["method"], params.get("args", {})
        return None

    async def process_request(self, request_data: Any) -> Dict[str, Any]:
        """Handle a JSON-RPC request."""
        if not isinstance(request_data, dict):
            return self._json_error(None, INVALID_REQUEST, "Request must be a JSON object")

        method = request_data.get("method")
        params = request_data.get("params")
        msg_id = request_data.get("id")

        if not isinstance(method, str) or not method:
            return self._json_error(msg_id, INVALID_REQUEST, "Missing method")

        if method == "list":
            pattern = None
            if isinstance(params, list) and params and isinstance(params[0], str):
                pattern = params[0]
            elif isinstance(params, dict) and isinstance(params.get("object"), str):
                pattern = params["object"]
            return {"jsonrpc": "2.0", "id": msg_id, "result": self.list_objects(pattern)}

        call = self._call_params(method, params)
        if call is None:
            if method == "call":
                return self._json_error(msg_id, INVALID_PARAMS, "Expected [object, method, args]")
            logger.warning(f"Unsupported RPC method: {method!r}")
            return self._json_error(msg_id, METHOD_NOT_FOUND, "Method not found")

        obj, name, args = call
        if not isinstance(obj, str) or not isinstance(name, str):
            return self._json_error(msg_id, INVALID_PARAMS, "Object and method must be strings")

        try:
            result = self.call(obj, name, args)
        except RpcdError as e:
            e.log(logging.WARNING if e.code != ErrorCode.UNKNOWN_ERROR else logging.ERROR)
            return self._json_error(msg_id, e.code.value, e.message, e.to_dict())
        return {"jsonrpc": "2.0", "id": msg_id, "result": result}
