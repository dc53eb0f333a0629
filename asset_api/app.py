"""
Flask application: REST routes over the asset-transfer chaincode.

The contract handle and settings are handed to ``create_app`` and stored on
the app; routes read them from ``current_app``.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Callable

from flask import Blueprint, Flask, Response, current_app, jsonify, request
from flask_cors import CORS
from pydantic import ValidationError

from asset_api.config import Settings
from asset_api.fabric import Contract, LedgerError
from asset_api.log import get_logger
from asset_api.models import (
    AssetIdGenerator,
    CreateAssetRequest,
    TransferAssetRequest,
    UpdateAssetRequest,
)

logger = get_logger(__name__)

bp = Blueprint("assets", __name__)


@dataclass(frozen=True)
class LedgerContext:
    contract: Contract
    settings: Settings
    new_asset_id: Callable[[], str]


def create_app(contract: Contract, settings: Settings, new_asset_id: Callable[[], str] | None = None) -> Flask:
    app = Flask(__name__)
    app.extensions["asset_api"] = LedgerContext(
        contract=contract,
        settings=settings,
        new_asset_id=new_asset_id or AssetIdGenerator(),
    )
    app.register_blueprint(bp)
    CORS(app, origins=[settings.cors_origin], methods=["GET", "POST"])
    return app


# ================== HELPERS ==================

def ctx() -> LedgerContext:
    return current_app.extensions["asset_api"]


def parse_body(model):
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        body = {}
    return model.model_validate(body)


def ledger_json(payload: bytes) -> Any:
    try:
        return json.loads(payload.decode("utf-8"))
    except ValueError as e:
        raise LedgerError(f"chaincode returned invalid JSON: {payload[:200]!r}") from e


def failure(message: str, e: LedgerError):
    logger.error(message, kind=e.kind, error=str(e))
    return jsonify({"error": message, "reason": e.kind}), 500


@bp.errorhandler(ValidationError)
def invalid_body(e: ValidationError):
    details = e.errors(include_url=False, include_context=False)
    return jsonify({"error": "Invalid request body", "details": details}), 400


# ================== ROUTES ==================

@bp.route("/")
def init_ledger():
    c = ctx()
    try:
        result = c.contract.submit_transaction(
            "InitLedger", wait_for_commit=c.settings.wait_for_commit
        )
    except LedgerError as e:
        return failure("Failed to initialize ledger", e)
    return Response(result, status=200, mimetype="application/octet-stream")


@bp.route("/api/assets", methods=["POST"])
def create_asset():
    c = ctx()
    body = parse_body(CreateAssetRequest)
    asset_id = c.new_asset_id()
    try:
        c.contract.submit_transaction(
            "CreateAsset", asset_id, body.color, body.size, body.owner, body.value,
            wait_for_commit=c.settings.wait_for_commit,
        )
    except LedgerError as e:
        return failure("Failed to create asset", e)

    logger.info("asset_created", asset_id=asset_id, owner=body.owner)
    return jsonify({"message": "Asset created successfully!", "assetId": asset_id}), 201


@bp.route("/api/assets/transfer", methods=["POST"])
def transfer_asset():
    c = ctx()
    body = parse_body(TransferAssetRequest)
    try:
        result = c.contract.submit_transaction(
            "TransferAsset", body.assetId, body.newOwner,
            wait_for_commit=c.settings.wait_for_commit,
        )
    except LedgerError as e:
        return failure("Failed to transfer asset", e)

    old_owner = result.decode("utf-8")
    # without a commit wait the transaction has only been ordered
    message = "Transaction committed successfully" if c.settings.wait_for_commit else "Transaction submitted"
    logger.info("asset_transferred", asset_id=body.assetId, old_owner=old_owner, new_owner=body.newOwner)
    return jsonify({
        "message": message,
        "oldOwner": old_owner,
        "newOwner": body.newOwner,
    })


@bp.route("/api/data")
def list_assets():
    c = ctx()
    try:
        payload = c.contract.evaluate_transaction("GetAllAssets")
        # some chaincode builds return nothing or null for an empty ledger
        assets = ledger_json(payload) if payload.strip() else []
        if assets is None:
            assets = []
        if not isinstance(assets, list):
            raise LedgerError(f"GetAllAssets returned {type(assets).__name__}, expected a list")
    except LedgerError as e:
        return failure("Failed to fetch assets", e)
    return jsonify(assets)


@bp.route("/api/assets/<asset_id>")
def read_asset(asset_id: str):
    c = ctx()
    try:
        asset = ledger_json(c.contract.evaluate_transaction("ReadAsset", asset_id))
    except LedgerError as e:
        return failure("Failed to read asset", e)
    return jsonify(asset)


@bp.route("/api/assets/update", methods=["POST"])
def update_asset():
    c = ctx()
    body = parse_body(UpdateAssetRequest)
    try:
        c.contract.submit_transaction(
            "UpdateAsset", body.assetId, body.color, body.size, body.owner, body.value,
            wait_for_commit=c.settings.wait_for_commit,
        )
    except LedgerError as e:
        return failure("Failed to update asset", e)

    logger.info("asset_updated", asset_id=body.assetId)
    return jsonify({"message": f"Asset {body.assetId} updated successfully"})
