# routes/issuer_routes.py
from flask import request, jsonify
from flask_jwt_extended import jwt_required

from . import issuer_bp, current_coordinator


@issuer_bp.route('', methods=['GET'])
@jwt_required()
async def get_issuers():
    coordinator = await current_coordinator()
    return jsonify([i.to_dict() for i in coordinator.get_all_issuers()]), 200


@issuer_bp.route('', methods=['POST'])
@jwt_required()
async def authorize_issuer():
    data = request.get_json(silent=True)

    if not data or not all(k in data for k in ['address', 'name']):
        return jsonify({"error": "Missing data"}), 400

    coordinator = await current_coordinator()
    issuer = await coordinator.authorize_issuer(data['address'], data['name'])

    return jsonify({
        "message": f"{issuer.display_name} has been authorized as an issuer",
        "issuer": issuer.to_dict()
    }), 201


@issuer_bp.route('/<address>', methods=['DELETE'])
@jwt_required()
async def deauthorize_issuer(address):
    coordinator = await current_coordinator()
    issuer = await coordinator.deauthorize_issuer(address)

    return jsonify({
        "message": f"{issuer.display_name} is no longer an authorized issuer",
        "issuer": issuer.to_dict()
    }), 200
