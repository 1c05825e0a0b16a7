"""HTTP + MCP server for the dashboard.

The JSON endpoints polled by the browser UI are registered as custom routes
on the same FastMCP app that exposes the dashboard operations as MCP tools,
so one uvicorn process serves both.
"""

from __future__ import annotations

import functools
import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from mcp.server.fastmcp import FastMCP
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from .config import Config
from .dashboard import Dashboard
from .errors import DashboardError, ValidationError
from .status import system_versions

log = logging.getLogger(__name__)

Handler = Callable[[Request], Awaitable[Any]]


def _json_endpoint(func: Handler) -> Callable[[Request], Awaitable[Response]]:
    """Convert a handler's result or error into a JSON response.

    DashboardError carries its own HTTP status; anything else is a 500.
    Nothing escapes the request boundary.
    """

    @functools.wraps(func)
    async def wrapper(request: Request) -> Response:
        try:
            result = await func(request)
        except DashboardError as exc:
            log.warning("%s %s -> %s: %s", request.method, request.url.path, exc.http_status, exc.message)
            return JSONResponse({"error": exc.message}, status_code=exc.http_status)
        except Exception as exc:
            log.exception("Unhandled error in %s %s", request.method, request.url.path)
            return JSONResponse({"error": str(exc)}, status_code=500)
        if isinstance(result, Response):
            return result
        return JSONResponse(result)

    return wrapper


async def _json_body(request: Request) -> dict[str, Any]:
    raw = await request.body()
    if not raw.strip():
        return {}
    try:
        body = json.loads(raw)
    except ValueError:
        raise ValidationError("Request body must be valid JSON") from None
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    return body


def create_server(
    config: Config | None = None,
    dashboard: Dashboard | None = None,
) -> FastMCP:
    """Create the dashboard server. Serve it with ``server.streamable_http_app()``."""

    cfg = config or (dashboard.config if dashboard else Config())
    db = dashboard or Dashboard.from_config(cfg)

    mcp = FastMCP(
        name="agentic-dashboard",
        instructions=(
            "Controls the agentic coding tools on this host: auto-claude, "
            "continuous-claude, automaker and acfs. Use get_status to see what "
            "is running, start_tool/stop_tool to control a tool, get_output to "
            "read a running tool's latest output, and environment_action for "
            "ACFS doctor and NTM session management."
        ),
        host=cfg.host,
        port=cfg.port,
        stateless_http=True,
    )

    # ------------------------------------------------------------------
    # HTTP: status
    # ------------------------------------------------------------------
    @mcp.custom_route("/api/status", methods=["GET"])
    @_json_endpoint
    async def status(request: Request) -> dict[str, Any]:
        state = await db.status.get_status()
        return state.to_dict()

    @mcp.custom_route("/api/system", methods=["GET"])
    @_json_endpoint
    async def system(request: Request) -> dict[str, Any]:
        return await system_versions()

    # ------------------------------------------------------------------
    # HTTP: environment tool
    # ------------------------------------------------------------------
    @mcp.custom_route("/api/tools/acfs", methods=["GET", "POST", "DELETE"])
    @_json_endpoint
    async def acfs(request: Request) -> dict[str, Any]:
        if request.method == "GET":
            return await db.acfs.environment()
        if request.method == "POST":
            return await db.acfs.dispatch(await _json_body(request))

        session = request.query_params.get("session")
        if not session:
            raise ValidationError("No session specified")
        return await db.acfs.kill_session(session)

    # ------------------------------------------------------------------
    # HTTP: process-backed tools
    # ------------------------------------------------------------------
    @mcp.custom_route("/api/tools/{tool}", methods=["POST", "DELETE"])
    @_json_endpoint
    async def tool(request: Request) -> Response | dict[str, Any]:
        key = request.path_params["tool"]
        if key not in db.adapters:
            return JSONResponse({"error": f"Unknown tool '{key}'"}, status_code=404)
        adapter = db.adapter(key)

        if request.method == "DELETE":
            return await adapter.stop()
        return await adapter.start(await _json_body(request))

    # ------------------------------------------------------------------
    # MCP tools
    # ------------------------------------------------------------------
    @mcp.tool()
    async def get_status() -> dict:
        """Current status of every tool plus the recent run history.

        A tool recorded as running whose process has died is reported idle.
        """
        state = await db.status.get_status()
        return state.to_dict()

    @mcp.tool()
    async def start_tool(tool: str, params: dict[str, Any] | None = None) -> dict:
        """Start one of the wrapped tools.

        Args:
            tool: "continuous-claude", "auto-claude" or "automaker".
            params: Tool parameters, as the HTTP endpoint takes them, e.g.
                {"prompt": "fix lint", "maxRuns": 3} for continuous-claude,
                {"task": "...", "projectDir": "...", "complexity": "simple"}
                for auto-claude, {"action": "start"} for automaker.
        """
        try:
            return await db.adapter(tool).start(params or {})
        except KeyError as exc:
            return {"tool": tool, "status": "not_found", "error": str(exc)}
        except DashboardError as exc:
            return {"tool": tool, "status": "error", "error": exc.message}

    @mcp.tool()
    async def stop_tool(tool: str) -> dict:
        """Stop a tool. Succeeds even if nothing was running."""
        try:
            return await db.adapter(tool).stop()
        except KeyError as exc:
            return {"tool": tool, "status": "not_found", "error": str(exc)}

    @mcp.tool()
    async def get_output(tool: str, tail: int = 1000) -> dict:
        """Latest buffered output of a tool started by this server.

        Args:
            tool: Tool key.
            tail: Number of trailing characters to return (max 1000).
        """
        try:
            return db.runner.get_output(tool, tail=tail)
        except KeyError as exc:
            return {"tool": tool, "status": "not_found", "error": str(exc)}

    @mcp.tool()
    async def environment_action(
        action: str,
        session_name: str | None = None,
        agents: dict[str, int] | None = None,
    ) -> dict:
        """Run an ACFS action: doctor, ntm-spawn, ntm-attach, ntm-kill or onboard.

        Args:
            action: The action name.
            session_name: NTM session name (ntm-spawn/attach/kill).
            agents: Agent counts for ntm-spawn, e.g. {"claude": 2, "codex": 1}.
        """
        params: dict[str, Any] = {"action": action}
        if session_name:
            params["sessionName"] = session_name
        if agents:
            params["agents"] = agents
        try:
            return await db.acfs.dispatch(params)
        except DashboardError as exc:
            return {"action": action, "status": "error", "error": exc.message}

    return mcp
