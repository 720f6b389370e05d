"""Flask API server serving live sorting-station metrics."""

import os
from datetime import datetime
from typing import Optional, Tuple

from flask import Flask, jsonify, request
from pydantic import ValidationError

from waste_metrics.data_source import DETECTIONS, ORGANIZATIONS
from waste_metrics.errors import WasteMetricsError
from waste_metrics.fetchers import fetch_impact, fetch_series, fetch_top_items
from waste_metrics.models import Category
from server.data_source import SqlDataSource
from server.notifications import create_change_hub
from server.views import ViewRegistry
from sharedUtils.config.loader import get_typed_config
from sharedUtils.config.models import AppConfig
from sharedUtils.mailer.base_mailer import EmailSendError, Mailer
from sharedUtils.mailer.contact import ContactForm, build_contact_email
from sharedUtils.mailer.resend_mailer import ResendMailer
from sharedUtils.logger.logger import get_logger

logger = get_logger(__name__)

ROLE_HEADER = "X-User-Role"
ORGANIZATION_HEADER = "X-Organization-Id"
ADMIN = "admin"
CLIENT = "client"


class AccessDenied(Exception):
    def __init__(self, message: str, status: int = 403):
        super().__init__(message)
        self.status = status


class UnknownOrganization(LookupError):
    pass


def _caller() -> Tuple[str, Optional[str]]:
    """
    Role and organization scope of the request.

    Clients are always scoped to their own organization; admins see every
    station unless they pass ?organization_id=.
    """
    role = (request.headers.get(ROLE_HEADER) or "").strip().lower()
    if role == ADMIN:
        return role, request.args.get("organization_id") or None
    if role == CLIENT:
        organization_id = request.headers.get(ORGANIZATION_HEADER)
        if not organization_id:
            raise AccessDenied("Client has no organization")
        return role, organization_id
    raise AccessDenied("Missing or unknown role", status=401)


def _parse_time(value: Optional[str], now: datetime) -> Optional[datetime]:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=now.tzinfo)
    return parsed


def create_app(
    source: Optional[SqlDataSource] = None,
    registry: Optional[ViewRegistry] = None,
    mailer: Optional[Mailer] = None,
    config: Optional[AppConfig] = None,
) -> Flask:
    """
    Build the API application.

    Missing collaborators are created from the configuration: a SQL data
    source (tables created on startup), a view registry and a Resend mailer.
    """
    config = config or get_typed_config()
    if source is None:
        source = SqlDataSource.from_config(config.data_source, create_change_hub(config.change_feed))
        source.create_all()
        logger.info("Database tables verified/created")

    if registry is None:
        registry = ViewRegistry(
            source,
            metrics_config=config.metrics,
            refresh_config=config.refresh,
            demo_feed_config=config.demo_feed,
        )
    if mailer is None:
        mailer = ResendMailer(config.email)

    app = Flask(__name__)
    app.extensions["view_registry"] = registry
    app.extensions["data_source"] = source

    def require_organization(organization_id: Optional[str]) -> None:
        """Views are only mounted for organizations that exist."""
        if organization_id is None:
            return
        if not source.query(ORGANIZATIONS, {"id": organization_id}):
            raise UnknownOrganization(organization_id)

    @app.errorhandler(AccessDenied)
    def access_denied(e: AccessDenied):
        logger.warning("%s %s: %s", request.method, request.path, e)
        return jsonify({"error": str(e)}), e.status

    @app.errorhandler(UnknownOrganization)
    def unknown_organization(e: UnknownOrganization):
        logger.warning("%s %s: unknown organization %s", request.method, request.path, e)
        return jsonify({"error": "Unknown organization"}), 404

    @app.errorhandler(WasteMetricsError)
    def metrics_error(e: WasteMetricsError):
        logger.error("%s %s: %s", request.method, request.path, e)
        return jsonify({"error": "Failed to load organization"}), 500

    @app.route('/health', methods=['GET'])
    def health_check():
        """Health check endpoint."""
        return jsonify({"status": "healthy"}), 200

    @app.route('/api/metrics', methods=['GET'])
    def get_metrics():
        """
        Current metrics snapshot of the caller's scope.

        Served from the view's refresh controller, so the response carries the
        controller status and, after a failed refresh, the error alongside the
        last good snapshot.
        """
        _, organization_id = _caller()
        require_organization(organization_id)
        state = registry.metrics_view(organization_id).state
        return jsonify(state.to_dict()), 200

    @app.route('/api/metrics/series', methods=['GET'])
    def get_series():
        """
        Category counts per time slot.

        Query parameters:
            timeframe: D, W, M, Y or C (default D)
            start, end: ISO-8601 bounds, only used by C
        """
        _, organization_id = _caller()
        now = registry.clock()
        timeframe = request.args.get('timeframe', 'D').upper()

        try:
            start = _parse_time(request.args.get('start'), now)
            end = _parse_time(request.args.get('end'), now)
            points = fetch_series(source, organization_id, timeframe, now, start=start, end=end)
        except ValueError as e:
            return jsonify({"error": f"Invalid query parameter: {e}"}), 400
        except WasteMetricsError as e:
            logger.error("GET /api/metrics/series: %s", e)
            return jsonify({"error": "Failed to retrieve series"}), 500

        return jsonify({
            "timeframe": timeframe,
            "points": [p.model_dump(mode="json") for p in points],
        }), 200

    @app.route('/api/metrics/items', methods=['GET'])
    def get_items():
        """Most-detected items in the timeframe (D, W or M)."""
        _, organization_id = _caller()
        timeframe = request.args.get('timeframe', 'D').upper()

        try:
            limit = request.args.get('limit', config.metrics.top_items_limit, type=int)
            items = fetch_top_items(source, organization_id, timeframe, registry.clock(), limit)
        except ValueError as e:
            return jsonify({"error": f"Invalid query parameter: {e}"}), 400
        except WasteMetricsError as e:
            logger.error("GET /api/metrics/items: %s", e)
            return jsonify({"error": "Failed to retrieve items"}), 500

        return jsonify({
            "timeframe": timeframe,
            "items": [i.model_dump(mode="json") for i in items],
        }), 200

    @app.route('/api/metrics/impact', methods=['GET'])
    def get_impact():
        """Environmental savings of the caller's scope."""
        _, organization_id = _caller()

        try:
            report = fetch_impact(source, organization_id, registry.clock())
        except WasteMetricsError as e:
            logger.error("GET /api/metrics/impact: %s", e)
            return jsonify({"error": "Failed to retrieve impact"}), 500

        return jsonify(report.model_dump(mode="json")), 200

    @app.route('/api/admin/metrics', methods=['GET'])
    def get_admin_metrics():
        """Platform counters; admins only."""
        role, organization_id = _caller()
        if role != ADMIN:
            raise AccessDenied("Admin role required")

        require_organization(organization_id)
        state = registry.admin_view(organization_id).state
        return jsonify(state.to_dict()), 200

    @app.route('/api/detections', methods=['POST'])
    def post_detection():
        """
        Store one detection reported by a station.

        Body: {"category": "recycle", "item": "plastic_bottle",
               "device_id": "station-001", "created_at": "2024-05-01T10:00:00+00:00"}
        created_at defaults to the server time.
        """
        data = request.get_json(silent=True)
        if not data:
            logger.warning("POST /api/detections: no JSON body")
            return jsonify({"error": "No JSON data provided"}), 400

        category = Category.parse(data.get("category"))
        if category is None:
            return jsonify({"error": f"Unknown category: {data.get('category')}"}), 400

        now = registry.clock()
        try:
            created_at = _parse_time(data.get("created_at"), now) or now
        except (TypeError, ValueError) as e:
            return jsonify({"error": f"Invalid created_at: {e}"}), 400

        row = {
            "category": category.value,
            "item": data.get("item"),
            "device_id": data.get("device_id"),
            "created_at": created_at,
        }

        try:
            source.insert(DETECTIONS, row)
        except Exception as e:
            logger.error("POST /api/detections: database error: %s", str(e))
            return jsonify({"error": "Failed to store detection"}), 500

        logger.info("Stored %s detection from device=%s", category.value, row["device_id"])
        return jsonify({"status": "success"}), 201

    @app.route('/api/demo/live', methods=['GET'])
    def get_demo_live():
        """Simulated feed totals for the public demo dashboard."""
        if not config.demo_feed.enabled:
            return jsonify({"error": "Demo feed disabled"}), 404

        state = registry.demo_view().state
        return jsonify(state.to_dict()), 200

    @app.route('/api/contact', methods=['POST'])
    def post_contact():
        """Email a contact form submission to the team."""
        try:
            form = ContactForm.model_validate(request.get_json(silent=True) or {})
        except ValidationError:
            return jsonify({"error": "Missing required fields"}), 400

        try:
            mailer.send(build_contact_email(form, config.email))
        except EmailSendError as e:
            logger.error("POST /api/contact: email error: %s", e)
            return jsonify({"error": "Failed to send"}), 500

        logger.info("Contact submission from %s (%s)", form.company, form.interest)
        return jsonify({"success": True}), 200

    return app


if __name__ == '__main__':
    debug = os.environ.get("FLASK_DEBUG", "false").lower() == "true"
    server_config = get_typed_config().server
    logger.info("Starting Flask API server (debug=%s)...", debug)
    create_app().run(host=server_config.host, port=server_config.port, debug=debug)
