#!/usr/bin/env python3
"""
Waste Station Metrics - Main Orchestrator

Starts and manages all components:
- Flask API server (live metrics views, detection ingest, contact form)
- Dash dashboard polling the API

Redis is only required when [change_feed].implementation is "redis".

Usage:
    python run_all.py [--seed]
"""

import argparse
import signal
import sys
import threading
import time

import redis
import requests
from werkzeug.serving import make_server

from server.app import create_app
from server.seed import seed_demo
from sharedUtils.logger.logger import get_logger
from sharedUtils.config import get_typed_config

logger = get_logger(__name__)

FLASK_HEALTH_POLL_INTERVAL = 0.5    # Seconds between /health polls
FLASK_HEALTH_TIMEOUT = 30           # Max seconds to wait for Flask to become healthy
REDIS_CHECK_TIMEOUT_SECONDS = 2     # Socket connect timeout when verifying Redis is reachable
SHUTDOWN_POLL_INTERVAL_SECONDS = 1  # How often the main loop checks for a stop signal

running = True


def check_redis_running() -> bool:
    """Check if Redis is running on configured host/port."""
    change_feed = get_typed_config().change_feed

    logger.info("Checking Redis connection at %s:%d...", change_feed.redis_host, change_feed.redis_port)

    try:
        client = redis.Redis(
            host=change_feed.redis_host,
            port=change_feed.redis_port,
            db=change_feed.redis_db,
            password=change_feed.redis_password,
            socket_connect_timeout=REDIS_CHECK_TIMEOUT_SECONDS
        )
        client.ping()
        logger.info("✓ Redis is running")
        return True
    except redis.RedisError as e:
        logger.error("✗ Redis not running: %s", e)
        logger.error("")
        logger.error("Please start Redis before running this script:")
        logger.error("  sudo systemctl start redis")
        logger.error("  OR")
        logger.error("  redis-server")
        return False


def wait_for_flask_healthy(base_url: str) -> bool:
    """
    Poll GET /health until Flask responds 200 or timeout expires.

    Returns True if Flask became healthy within FLASK_HEALTH_TIMEOUT seconds.
    """
    health_url = f"{base_url}/health"
    deadline = time.time() + FLASK_HEALTH_TIMEOUT

    while time.time() < deadline:
        try:
            resp = requests.get(health_url, timeout=2)
            if resp.status_code == 200:
                logger.info("✓ Flask API server is healthy")
                return True
        except requests.exceptions.RequestException:
            pass  # Not ready yet
        time.sleep(FLASK_HEALTH_POLL_INTERVAL)

    logger.error("✗ Flask did not become healthy within %ds", FLASK_HEALTH_TIMEOUT)
    return False


def start_server(name: str, wsgi_app, host: str, port: int):
    """Serve a WSGI app from a daemon thread; returns the server for shutdown."""
    http_server = make_server(host, port, wsgi_app, threaded=True)
    thread = threading.Thread(target=http_server.serve_forever, name=name, daemon=True)
    thread.start()
    logger.info("%s listening on %s:%d", name, host, port)
    return http_server


def wait_for_shutdown():
    """Block until a shutdown signal arrives."""
    try:
        while running:
            time.sleep(SHUTDOWN_POLL_INTERVAL_SECONDS)
    except KeyboardInterrupt:
        logger.info("")
        logger.info("Interrupted by user")


def signal_handler(signum, frame):
    """Handle shutdown signals gracefully."""
    global running
    _ = signum, frame  # Unused but required by signal.signal
    logger.info("")
    logger.info("Received shutdown signal. Stopping...")
    running = False


def cleanup(servers, api_app):
    """Clean up resources on shutdown."""
    logger.info("Cleaning up resources...")

    for http_server in servers:
        try:
            http_server.shutdown()
        except Exception as e:
            logger.error("Error stopping server: %s", e)

    if api_app is not None:
        try:
            api_app.extensions["view_registry"].close_all()
            api_app.extensions["data_source"].hub.close()
            logger.info("✓ Live views closed")
        except Exception as e:
            logger.error("Error closing live views: %s", e)

    logger.info("Shutdown complete")


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Run the metrics API and dashboard")
    parser.add_argument("--seed", action="store_true", help="Seed demo data before starting")
    args = parser.parse_args()

    logger.info("=" * 60)
    logger.info("Waste Station Metrics - Starting All Components")
    logger.info("=" * 60)
    logger.info("")

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    servers = []
    api_app = None

    try:
        config = get_typed_config()

        # Step 1: Check Redis when it carries change notifications
        if config.change_feed.implementation == "redis" and not check_redis_running():
            logger.error("")
            return 1

        # Step 2: Start the API server
        api_app = create_app(config=config)
        if args.seed:
            seed_demo(api_app.extensions["data_source"])
        servers.append(start_server("API server", api_app, config.server.host, config.server.port))

        if not wait_for_flask_healthy(config.server.api_base_url):
            logger.error("Flask health check failed - aborting")
            return 1

        logger.info("")

        # Step 3: Start the dashboard (imported late: it reads the API settings at import)
        from dash_frontend.app import app as dash_app
        servers.append(start_server("Dashboard", dash_app.server, config.server.host,
                                    config.server.dashboard_port))

        logger.info("✓ All components initialized successfully")
        logger.info("Press Ctrl+C to stop")
        logger.info("")

        wait_for_shutdown()

    except KeyboardInterrupt:
        logger.info("")
        logger.info("Interrupted by user")
    except Exception as e:
        logger.error("Fatal error: %s", e, exc_info=True)
        return 1
    finally:
        cleanup(servers, api_app)

    return 0


if __name__ == "__main__":
    sys.exit(main())
