# routes/verifier_routes.py
from flask import request, jsonify
from flask_jwt_extended import jwt_required

from . import verifier_bp, current_coordinator


def _serialize(result):
    data = result.to_dict()
    data["status_info"] = result.status_info()
    return data


@verifier_bp.route('/verify', methods=['POST'])
@jwt_required()
async def verify_credential():
    data = request.get_json(silent=True)

    if not data or 'fingerprint' not in data:
        return jsonify({"error": "Credential fingerprint missing"}), 400

    coordinator = await current_coordinator()
    result = await coordinator.verify_credential(data['fingerprint'])

    return jsonify(_serialize(result)), 200


@verifier_bp.route('/verify-batch', methods=['POST'])
@jwt_required()
async def verify_credentials_batch():
    data = request.get_json(silent=True)

    if not data or not isinstance(data.get('fingerprints'), list):
        return jsonify({"error": "A list of fingerprints is required"}), 400

    coordinator = await current_coordinator()
    results = await coordinator.batch_verify_credentials(data['fingerprints'])

    return jsonify([_serialize(r) for r in results]), 200


@verifier_bp.route('/cache', methods=['GET'])
@jwt_required()
async def get_cache_stats():
    coordinator = await current_coordinator()
    return jsonify(coordinator.verification_cache.stats()), 200


@verifier_bp.route('/cache', methods=['DELETE'])
@jwt_required()
async def clear_cache():
    coordinator = await current_coordinator()
    coordinator.clear_verification_cache()
    return jsonify({"message": "Verification cache cleared"}), 200
