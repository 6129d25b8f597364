# /gas_oracle/core/http_api.py
from aiohttp import web
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from gas_oracle.core.errors import InvalidPercentileError, NotReadyError
from gas_oracle.core.logger import get_logger
from gas_oracle.core.oracle import GasOracle

log = get_logger(__name__)

ORACLE_KEY = web.AppKey("oracle", GasOracle)

# 1-4, every fifth percentile, then 96-100.
REPORTED_PERCENTILES = [*range(1, 5), *range(5, 96, 5), *range(96, 101)]

def format_nanoeth(wei: int) -> str:
    value = wei / 10**9
    return f"{int(value) if value.is_integer() else value} nanoeth"

@web.middleware
async def error_middleware(request, handler):
    """Query errors are the client's problem: expose the message, don't log a fault."""
    try:
        return await handler(request)
    except InvalidPercentileError as e:
        return web.json_response({"error": str(e)}, status=400)
    except NotReadyError as e:
        return web.json_response({"error": str(e)}, status=503)

@web.middleware
async def cors_middleware(request, handler):
    response = await handler(request)
    response.headers["Access-Control-Allow-Origin"] = "*"
    return response

async def gas_prices(request):
    """Window size, tip height and the full percentile table."""
    oracle = request.app[ORACLE_KEY]
    body = {
        "number_of_blocks": oracle.get_number_of_blocks(),
        "latest_block_number": oracle.get_latest_block_number(),
    }
    for p in REPORTED_PERCENTILES:
        body[f"percentile_{p}"] = format_nanoeth(oracle.get_percentile(p))
    return web.json_response(body)

async def single_percentile(request):
    raw = request.match_info["p"]
    try:
        p = int(raw)
    except ValueError:
        raise InvalidPercentileError("Percentile must be between 1 and 100.") from None
    value = request.app[ORACLE_KEY].get_percentile(p)
    return web.json_response({"percentile": p, "gas_price": value})

async def healthz(request):
    """Provides a JSON health status for the service."""
    oracle = request.app[ORACLE_KEY]
    return web.json_response({
        "status": "ok",
        "number_of_blocks": oracle.get_number_of_blocks(),
        "latest_block_number": oracle.get_latest_block_number(),
    })

async def metrics(request):
    return web.Response(body=generate_latest(), headers={"Content-Type": CONTENT_TYPE_LATEST})

def create_app(oracle: GasOracle) -> web.Application:
    app = web.Application(middlewares=[cors_middleware, error_middleware])
    app[ORACLE_KEY] = oracle
    app.add_routes([
        web.get("/", gas_prices),
        web.get("/percentile/{p}", single_percentile),
        web.get("/healthz", healthz),
        web.get("/metrics", metrics),
    ])
    log.info("HTTP_APP_CREATED")
    return app
