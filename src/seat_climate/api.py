"""HTTP surface for the sensor device and the web client."""

import logging
from typing import Any

from flask import Flask, jsonify, request

from .config import is_number
from .exceptions import ConfigRejected, ValidationError
from .runtime import SeatController

_LOGGER = logging.getLogger(__name__)


def _json_body() -> Any:
    body = request.get_json(silent=True)
    return {} if body is None else body


def create_app(controller: SeatController) -> Flask:
    """Build the Flask app bound to a controller."""
    app = Flask(__name__)
    app.config["SEAT_CONTROLLER"] = controller

    @app.errorhandler(ValidationError)
    def handle_validation_error(e: ValidationError):
        _LOGGER.warning(f"Rejected request to {request.path}: {e.message}")
        return jsonify({"error": e.message}), 400

    @app.get("/api/data")
    def get_data():
        # Polled by the seat device
        state = controller.snapshot()
        return jsonify({"seatReserved": state["seatReserved"], "fanOn": state["fanOn"]})

    @app.post("/api/data")
    def post_data():
        body = _json_body()
        state = controller.handle_report(body)

        updated: dict[str, Any] = {}
        if "temperature" in body:
            updated["temperature"] = state["temperature"]
            updated["acOn"] = state["acOn"]
            updated["fanOn"] = state["fanOn"]
        if "seatUsed" in body:
            updated["seatUsed"] = state["seatUsed"]
            updated["alarm"] = state["alarm"]

        return jsonify({"ok": True, "updated": updated, "state": state})

    @app.get("/api/status")
    def get_status():
        return jsonify(controller.status())

    @app.post("/api/toggleSeatReserved")
    def toggle_seat_reserved():
        body = _json_body()
        if not isinstance(body, dict):
            raise ValidationError("body", "request body must be a JSON object")
        target = body.get("notifyTarget")
        if is_number(target):
            # Opaque subscriber id; numeric ids are kept as their text form
            target = str(target)
        elif target is not None and not isinstance(target, str):
            raise ValidationError(
                "notifyTarget", "notifyTarget must be a string or a number"
            )

        state = controller.toggle_reservation(target)
        return jsonify({"seatReserved": state["seatReserved"], "alarm": state["alarm"]})

    @app.post("/api/config")
    def post_config():
        try:
            config = controller.update_config(_json_body())
        except ValidationError as e:
            return jsonify({"success": False, "error": e.message}), 400
        except ConfigRejected as e:
            return jsonify({"success": False, "error": e.reason}), 400
        return jsonify({"success": True, "config": config.to_dict()})

    @app.post("/api/saveToken")
    def save_token():
        body = _json_body()
        token = body.get("fcmToken") if isinstance(body, dict) else None
        if token is None:
            return jsonify({"error": "fcmToken is required"}), 400
        controller.register_notify_target(token)
        return jsonify({"success": True})

    return app
