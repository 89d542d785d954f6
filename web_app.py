#!/usr/bin/env python3
"""
Flask web application for the Vartha Malayalam headline aggregator.
Serves the cached headline set and a health check; aggregation passes run on a
background asyncio loop so a slow pass can outlive the request that started it.
"""

import concurrent.futures
import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from flask import Flask, jsonify, request
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

from cors_config import configure_cors
from vartha.aggregation.aggregator import HeadlineAggregator
from vartha.aggregation.cache_gate import CacheGate
from vartha.concurrency.background_loop import BackgroundLoop
from vartha.config.settings import Settings
from vartha.config.sources import SourceRegistry
from vartha.errors import RequestTimeout

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def _parse_external_bool(value: Any, default: bool = False) -> bool:
    """Parse truthy query parameters safely."""
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {'1', 'true', 'yes', 'on'}


def _headlines_payload(entry, cached: bool, version: str, include_stats: bool) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        'version': version,
        'updatedAt': entry.updated_at_ms,
        'items': [item.to_dict() for item in entry.items],
        'cached': cached,
    }
    if include_stats:
        payload['stats'] = [s.to_dict() for s in entry.stats]
    return payload


def build_gate(settings: Settings) -> CacheGate:
    """Wire sources -> aggregator -> cache. Raises ConfigError on a bad descriptor file."""
    registry = SourceRegistry(settings.sources_path)
    aggregator = HeadlineAggregator.from_settings(settings, registry)
    return CacheGate(aggregator.run, ttl_seconds=settings.cache_ttl_seconds)


def create_app(
    settings: Optional[Settings] = None,
    gate: Optional[CacheGate] = None,
    loop: Optional[BackgroundLoop] = None,
) -> Flask:
    settings = settings or Settings.from_env()
    gate = gate or build_gate(settings)
    loop = loop or BackgroundLoop()
    loop.start()

    app = Flask(__name__)
    app.json.sort_keys = False
    app.extensions['headlines_gate'] = gate
    app.extensions['headlines_loop'] = loop
    configure_cors(app, settings.cors_origins)

    limiter = Limiter(
        key_func=get_remote_address,
        default_limits=[lim.strip() for lim in settings.rate_limit_default.split(';') if lim.strip()],
        storage_uri="memory://"
    )
    limiter.init_app(app)

    @app.route('/api/headlines')
    @limiter.limit(settings.headlines_rate_limit)
    def headlines():
        """Cached headline set; ?force=1 bypasses the TTL, ?debug=1 adds per-source stats"""
        force = _parse_external_bool(request.args.get('force'))
        debug = _parse_external_bool(request.args.get('debug'))
        future = loop.submit(gate.refresh(force=force))
        try:
            entry, cached = future.result(timeout=settings.request_timeout_seconds)
        except concurrent.futures.TimeoutError:
            # The pass is not cancelled; it still populates the cache when done.
            err = RequestTimeout(settings.request_timeout_seconds)
            logger.warning(f"{err}; pass continues in background")
            return jsonify({
                'version': settings.version,
                'error': 'Timed out fetching headlines',
                'message': f"{err}. Please try again shortly."
            }), 504
        except Exception as e:
            logger.error(f"Headline aggregation failed: {e}", exc_info=True)
            return jsonify({
                'version': settings.version,
                'error': 'Failed to fetch headlines',
                'message': str(e)
            }), 500
        return jsonify(_headlines_payload(entry, cached, settings.version, debug))

    @app.route('/health')
    @app.route('/api/health')
    @limiter.exempt
    def health_check():
        """API health check endpoint"""
        return jsonify({
            'status': 'ok',
            'version': settings.version,
            'time': datetime.now(timezone.utc).isoformat()
        })

    @app.errorhandler(404)
    def not_found(error):
        """Custom 404 handler"""
        return jsonify({'error': 'Endpoint not found'}), 404

    @app.errorhandler(429)
    def rate_limit_handler(error):
        """Custom rate limit handler"""
        return jsonify({
            'error': 'Rate limit exceeded',
            'message': 'Too many requests, please slow down',
            'retry_after': 60
        }), 429

    @app.errorhandler(500)
    def internal_error(error):
        """Custom 500 handler"""
        logger.error(f"Internal server error: {error}")
        return jsonify({'version': settings.version, 'error': 'Internal server error'}), 500

    return app


_wsgi_app: Optional[Flask] = None


def __getattr__(name: str) -> Any:
    # WSGI target (gunicorn web_app:app), built from the environment on first access
    global _wsgi_app
    if name == 'app':
        if _wsgi_app is None:
            _wsgi_app = create_app()
        return _wsgi_app
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


if __name__ == '__main__':
    settings = Settings.from_env()
    app = create_app(settings)
    debug = os.environ.get('FLASK_ENV') == 'development'

    logger.info(f"Starting Vartha headlines server on port {settings.port}")
    logger.info(f"Sources: {settings.sources_path}, cache TTL {settings.cache_ttl_seconds:g}s")

    app.run(
        host='0.0.0.0',
        port=settings.port,
        debug=debug,
        threaded=True,
        use_reloader=False
    )
