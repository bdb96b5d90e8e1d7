"""Flask HTTP service issuing unique codes.

All requests served by one application share a dedup store, so codes are
unique across requests as well as within one.
"""

import logging
from typing import Optional

from flask import Flask, Response, request

from uniqcodes.config import Config
from uniqcodes.dedup import DedupStore, InMemoryDedupStore
from uniqcodes.errors import (
    CodeGenerationError,
    InfeasibleRequest,
    NoProgressError,
    RandomSourceExhausted,
)
from uniqcodes.pipeline import GenerationPipeline
from uniqcodes.renderer import Renderer
from uniqcodes.sampler import UnbiasedSampler

# Configure logging
logger = logging.getLogger(__name__)

# Maximum codes per request
MAX_QUANTITY = 100_000


def _text(message: str, status: int) -> Response:
    return Response(f"{message}\n", status=status, mimetype="text/plain")


def create_app(
    config: Config,
    renderer: Renderer,
    store: Optional[DedupStore] = None,
) -> Flask:
    """Create and configure Flask application.

    Args:
        config: Configuration providing defaults for size, prefix and alphabet
        renderer: Renderer for formatting responses
        store: Dedup store shared by all requests (default: new in-memory store)

    Returns:
        Configured Flask application
    """
    app = Flask(__name__)
    sampler = UnbiasedSampler(config.alphabet)
    shared_store = store if store is not None else InMemoryDedupStore()

    @app.route("/", methods=["GET"])
    def health_check():
        """Health check endpoint.

        GET / - Health check

        Returns:
            200: OK
        """
        return _text("OK", 200)

    @app.route("/codes", methods=["POST"])
    def issue_codes():
        """Generate a batch of unique codes.

        POST /codes - parameters quantity, size and prefix (form or query)

        Returns:
            200: Codes as plain text or CSV (per Accept header)
            400: Bad request (invalid parameters)
            409: Conflict (code space exhausted)
            413: Too many codes requested
            422: Request infeasible for the code space
            500: Internal server error
            503: Random source unavailable
        """
        try:
            quantity = int(request.values.get("quantity", config.quantity))
            size = int(request.values.get("size", config.size))
        except ValueError:
            logger.warning(f"Non-integer parameters from {request.remote_addr}")
            return _text("Bad Request: quantity and size must be integers", 400)
        prefix = request.values.get("prefix", config.prefix)

        if quantity > MAX_QUANTITY:
            logger.warning(f"Too many codes requested: {quantity}")
            return _text(
                f"Payload Too Large: Maximum quantity is {MAX_QUANTITY} codes", 413
            )

        pipeline = GenerationPipeline(sampler, shared_store, config.max_threads)
        try:
            codes = pipeline.run(size, quantity, prefix, config.namespace)
        except ValueError as e:
            logger.warning(f"Invalid generation request: {e}")
            return _text(f"Bad Request: {e}", 400)
        except InfeasibleRequest as e:
            return _text(f"Unprocessable Entity: {e}", 422)
        except NoProgressError as e:
            return _text(f"Conflict: {e}", 409)
        except RandomSourceExhausted as e:
            return _text(f"Service unavailable: {e}", 503)
        except CodeGenerationError as e:
            logger.error(f"Code generation failed: {e}")
            return _text("Internal Server Error: Code generation failed", 500)

        format_type = renderer.determine_format(request.headers.get("Accept"))
        content, content_type = renderer.render(codes, format_type)
        logger.info(f"Issued {len(codes)} codes to {request.remote_addr}")
        return Response(content, status=200, mimetype=content_type)

    return app


def run_server(config: Config, renderer: Renderer) -> None:
    """Run the Flask HTTP server.

    Args:
        config: Configuration instance
        renderer: Renderer for formatting responses
    """
    app = create_app(config, renderer)

    logger.info(f"Starting HTTP server on all interfaces, port {config.listen_port}")
    app.run(host="0.0.0.0", port=config.listen_port, debug=False)  # nosec B104
