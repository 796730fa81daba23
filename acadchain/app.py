#!/usr/bin/env python3
"""
Main application for the academic credentials dashboard backend
"""
import argparse
import asyncio
import logging
import sys

from flask import Flask, jsonify
from flask_jwt_extended import JWTManager

from .config import Config
from .exceptions import CredentialError
from .models import Role, Session
from .routes import credential_bp, issuer_bp, system_bp, verifier_bp
from .services.credential_service import CredentialCoordinator
from .services.ipfs_service import LocalContentStore
from .services.registry import CoordinatorRegistry

jwt = JWTManager()


def create_app(config_class=Config, registry=None):
    """
    Builds the Flask application.

    Args:
        config_class: Configuration class to load
        registry: Pre-built CoordinatorRegistry, built from the configuration when omitted
    """
    app = Flask(__name__)
    app.config.from_object(config_class)

    jwt.init_app(app)

    app.extensions['acadchain'] = registry or CoordinatorRegistry.from_config(config_class)

    app.register_blueprint(credential_bp)
    app.register_blueprint(verifier_bp)
    app.register_blueprint(issuer_bp)
    app.register_blueprint(system_bp)

    @app.errorhandler(CredentialError)
    def handle_credential_error(error):
        return jsonify({"error": error.reason}), error.status_code

    return app


async def run_demo():
    """Walks through issue, verify and revoke in a local session"""
    store = LocalContentStore()
    university = CredentialCoordinator(
        Session("demo-university", Role.ISSUER, wallet_address="0xDEMO_UNIVERSITY_ADDRESS", demo=True), store
    )

    print("\n1. University issues a credential")
    record = await university.issue_credential(
        "0xDEMO_UNIVERSITY_ADDRESS", "did:demo:student-1", "Jane Doe", "B.Sc. Computer Science"
    )
    print(f"   Fingerprint: {record.fingerprint}")
    print(f"   Content ID:  {record.content_id}")

    print("\n2. Verification")
    result = await university.verify_credential(record.fingerprint)
    print(f"   valid={result.valid} on_chain={result.on_chain} status={result.status.value} issuer={result.issuer_name}")

    print("\n3. University revokes the credential")
    await university.revoke_credential(record.fingerprint)

    print("\n4. Verification after revocation")
    result = await university.verify_credential(record.fingerprint)
    print(f"   valid={result.valid} status={result.status.value}")

    print("\nNotifications:")
    for notification in university.notifications:
        print(f"   [{notification.severity}] {notification.title}: {notification.message}")


def main(argv=None):
    parser = argparse.ArgumentParser(description="Academic credentials coordination engine")
    subparsers = parser.add_subparsers(dest="command")

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", default="127.0.0.1")
    serve_parser.add_argument("--port", type=int, default=5000)

    subparsers.add_parser("demo", help="Run the local-mode walkthrough")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=Config.LOG_LEVEL,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    if args.command == "serve":
        create_app().run(host=args.host, port=args.port)
    elif args.command == "demo":
        asyncio.run(run_demo())
    else:
        parser.print_help()
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
