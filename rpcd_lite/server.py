"""HTTP transport for the JSON-RPC endpoint."""

from __future__ import annotations

import json
import logging

import aiohttp.web

from .permissions import Permission
from .rpc import INVALID_REQUEST, PARSE_ERROR, RpcHandler

logger = logging.getLogger(__name__)

VERSION = "1.0"


class HTTPServer:
    """HTTP server for RPC endpoints"""

    def __init__(self, rpc: RpcHandler, host: str = "127.0.0.1", port: int = 8089):
        self.rpc = rpc
        self.host = host
        self.port = port
        self.app = aiohttp.web.Application()
        self.runner: aiohttp.web.AppRunner | None = None
        self._setup_routes()

    def _setup_routes(self):
        self.app.add_routes([
            aiohttp.web.get('/', self.handle_health),
            aiohttp.web.post('/', self.handle_rpc),
            aiohttp.web.get('/health', self.handle_health),
            aiohttp.web.get('/rpc/list', self.handle_list),
            aiohttp.web.post('/rpc', self.handle_rpc),
            aiohttp.web.get('/permissions', self.handle_permissions_get),
            aiohttp.web.post('/permissions', self.handle_permissions_set),
        ])

    async def handle_health(self, request) -> aiohttp.web.Response:
        return aiohttp.web.json_response({
            'status': 'healthy',
            'version': VERSION,
            'objects': sorted(self.rpc.objects),
        })

    async def handle_list(self, request) -> aiohttp.web.Response:
        return aiohttp.web.json_response(self.rpc.list_objects(request.query.get('object')))

    async def handle_rpc(self, request) -> aiohttp.web.Response:
        """Execute a JSON-RPC request.

        Handlers run synchronously on the event loop, so requests are
        serviced one at a time.
        """
        try:
            data = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            logger.info("Received non-JSON RPC request")
            return aiohttp.web.json_response(
                {'jsonrpc': '2.0', 'id': None, 'error': {'code': PARSE_ERROR, 'message': 'Invalid JSON'}},
                status=400,
            )

        if isinstance(data, dict):
            logger.info(f"JSON-RPC request method={data.get('method')}")
            return aiohttp.web.json_response(await self.rpc.process_request(data))

        return aiohttp.web.json_response(
            {'jsonrpc': '2.0', 'id': None, 'error': {'code': INVALID_REQUEST, 'message': 'Request must be a JSON object'}},
            status=400,
        )

    def _permission_manager(self):
        manager = self.rpc.context.permission_manager
        if manager is None:
            raise aiohttp.web.HTTPNotFound(text='Permission table not configured')
        return manager

    async def handle_permissions_get(self, request) -> aiohttp.web.Response:
        """Get all permissions"""
        manager = self._permission_manager()
        return aiohttp.web.json_response({
            'permissions': manager.get_all(),
            'disabled': manager.get_disabled(),
        })

    async def handle_permissions_set(self, request) -> aiohttp.web.Response:
        """Set permission for one ``object.method``"""
        manager = self._permission_manager()
        try:
            data = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            return aiohttp.web.json_response({'error': 'Invalid JSON'}, status=400)
        if not isinstance(data, dict):
            return aiohttp.web.json_response({'error': 'Expected a JSON object'}, status=400)

        method = data.get('method')
        if method not in self.rpc.method_names():
            return aiohttp.web.json_response({'error': f'Unknown method: {method!r}'}, status=404)
        try:
            permission = Permission(data.get('permission'))
        except ValueError:
            return aiohttp.web.json_response(
                {'error': 'permission must be one of: ' + ', '.join(p.value for p in Permission)},
                status=400,
            )

        manager.set_permission(method, permission)
        logger.info(f"Permission for {method} set to {permission.value}")
        return aiohttp.web.json_response({'method': method, 'permission': permission.value})

    async def start(self):
        self.runner = aiohttp.web.AppRunner(self.app)
        await self.runner.setup()
        site = aiohttp.web.TCPSite(self.runner, self.host, self.port)
        await site.start()
        logger.info(f"HTTP server started on {self.host}:{self.port}")

    async def stop(self):
        if self.runner:
            await self.runner.cleanup()
            self.runner = None
