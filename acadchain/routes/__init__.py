# routes/__init__.py
from flask import Blueprint, current_app
from flask_jwt_extended import get_jwt, get_jwt_identity

from ..exceptions import AuthorizationError
from ..models import Session

# Blueprint creation
credential_bp = Blueprint('credentials', __name__, url_prefix='/api/credentials')
verifier_bp = Blueprint('verifier', __name__, url_prefix='/api/verifier')
issuer_bp = Blueprint('issuers', __name__, url_prefix='/api/issuers')
system_bp = Blueprint('system', __name__, url_prefix='/api/system')


async def current_coordinator():
    """Returns the coordinator bound to the caller's JWT identity"""
    try:
        session = Session.from_claims(get_jwt_identity(), get_jwt())
    except ValueError as e:
        raise AuthorizationError(f"Unknown session role: {e}") from e
    return await current_app.extensions['acadchain'].get(session)


# Route imports
from .credential_routes import *  # noqa: E402,F401,F403
from .verifier_routes import *  # noqa: E402,F401,F403
from .issuer_routes import *  # noqa: E402,F401,F403
from .system_routes import *  # noqa: E402,F401,F403
