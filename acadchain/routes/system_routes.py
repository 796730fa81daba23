# routes/system_routes.py
from flask import jsonify
from flask_jwt_extended import jwt_required

from . import system_bp, current_coordinator


@system_bp.route('/status', methods=['GET'])
@jwt_required()
async def get_status():
    coordinator = await current_coordinator()
    status = await coordinator.get_network_status()
    status["wallet_balance"] = str(await coordinator.get_wallet_balance())
    return jsonify(status), 200


@system_bp.route('/pause', methods=['POST'])
@jwt_required()
async def toggle_pause():
    coordinator = await current_coordinator()
    paused = coordinator.toggle_pause()
    return jsonify({"paused": paused}), 200


@system_bp.route('/notifications', methods=['GET'])
@jwt_required()
async def get_notifications():
    coordinator = await current_coordinator()
    return jsonify([n.to_dict() for n in coordinator.notifications]), 200
