# routes/credential_routes.py
from flask import request, jsonify
from flask_jwt_extended import jwt_required

from . import credential_bp, current_coordinator


@credential_bp.route('/issue', methods=['POST'])
@jwt_required()
async def issue_credential():
    data = request.get_json(silent=True)

    if not data or not all(k in data for k in ['student_identifier', 'student_name', 'course_name']):
        return jsonify({"error": "Missing data"}), 400

    coordinator = await current_coordinator()
    record = await coordinator.issue_credential(
        data.get('issuer_address') or coordinator.session.wallet_address,
        data['student_identifier'],
        data['student_name'],
        data['course_name'],
    )

    return jsonify({
        "message": "Credential issued successfully",
        "credential": record.to_dict()
    }), 201


@credential_bp.route('/batch-issue', methods=['POST'])
@jwt_required()
async def batch_issue_credentials():
    data = request.get_json(silent=True)

    if not data or not isinstance(data.get('records'), list):
        return jsonify({"error": "A list of records is required"}), 400

    coordinator = await current_coordinator()
    results = await coordinator.batch_issue_credentials(data['records'])

    return jsonify({
        "issued": sum(1 for r in results if r.ok),
        "failed": sum(1 for r in results if not r.ok),
        "results": [r.to_dict() for r in results]
    }), 200


@credential_bp.route('/<fingerprint>/revoke', methods=['POST'])
@jwt_required()
async def revoke_credential(fingerprint):
    coordinator = await current_coordinator()
    record = await coordinator.revoke_credential(fingerprint)

    return jsonify({
        "message": "Credential revoked successfully",
        "credential": record.to_dict()
    }), 200


@credential_bp.route('/issued', methods=['GET'])
@jwt_required()
async def get_issued_credentials():
    coordinator = await current_coordinator()
    return jsonify([c.to_dict() for c in coordinator.get_issued_credentials()]), 200


@credential_bp.route('/mine', methods=['GET'])
@jwt_required()
async def get_my_credentials():
    coordinator = await current_coordinator()
    return jsonify([c.to_dict() for c in coordinator.get_my_credentials()]), 200
