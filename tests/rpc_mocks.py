"""JSON-RPC mock transport helpers shared by the tests."""

import json
from typing import Any, Callable, Dict, List, Optional

import httpx

from olivia.solana.rpc import SolanaRPCClient


class RPCFault(Exception):
    def __init__(self, code: int, message: str, logs: Optional[List[str]] = None):
        super().__init__(message)
        self.error = {"code": code, "message": message}
        if logs is not None:
            self.error["data"] = {"logs": logs}


def rpc_router(routes: Dict[str, Any], calls: Optional[List[Dict[str, Any]]] = None):
    """
    Build a MockTransport handler answering JSON-RPC requests by method.

    A route value may be a plain result, a callable taking ``params``, or an
    ``httpx.Response`` returned as is. Callables raising ``RPCFault`` produce
    a JSON-RPC error body.
    """

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        if calls is not None:
            calls.append(body)
        method = body["method"]
        if method not in routes:
            raise AssertionError(f"Unexpected RPC method {method}")
        route = routes[method]
        if isinstance(route, httpx.Response):
            return route
        try:
            result = route(body["params"]) if callable(route) else route
        except RPCFault as fault:
            return httpx.Response(
                200,
                json={"jsonrpc": "2.0", "id": body["id"], "error": fault.error},
            )
        if isinstance(result, httpx.Response):
            return result
        return httpx.Response(
            200, json={"jsonrpc": "2.0", "id": body["id"], "result": result}
        )

    return handler


def build_rpc(handler: Callable[[httpx.Request], httpx.Response], **kwargs) -> SolanaRPCClient:
    session = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    kwargs.setdefault("backoff_seconds", 0.01)
    return SolanaRPCClient("http://rpc.test", session=session, **kwargs)
