# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/depot/routes/auth.py
"""
Authentication API routes.

Accounts are created by the owner (distributors), by distributors (their
clients) or from the CLI; there is no self-registration.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..permissions import permissions_for
from ..services import auth_service
from ..services import session_service
from ..services import directory_service
from ..time_utils import to_utc_z
from ..decorators import require_auth


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Request body:
    {
        "email": str,
        "password": str
    }

    Returns:
        200: {user, permissions, token, expires_at}
        400: Missing credentials
        401: Invalid credentials or inactive account
    """
    try:
        data = request.get_json(silent=True) or {}
        email = data.get("email")
        password = data.get("password")

        if not all([email, password]) or not isinstance(email, str) or not isinstance(password, str):
            return jsonify({"error": "email and password required"}), 400

        user = auth_service.authenticate(email, password)
        if not user:
            current_app.logger.info("Failed login for %s from %s", email, request.remote_addr)
            return jsonify({"error": "Invalid credentials"}), 401

        session, token = session_service.create_session(
            user,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )

        return jsonify({
            "user": user.to_dict(),
            "permissions": permissions_for(user.role),
            "token": token,
            "expires_at": to_utc_z(session.expires_at),
            "message": "Login successful"
        }), 200

    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
@require_auth
def logout_route():
    """Revoke the bearer token used for this request."""
    try:
        session_service.revoke_session(g.auth_token)
        return jsonify({"message": "Logout successful"}), 200

    except Exception:
        current_app.logger.exception("Failed to logout user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.get("/me")
@require_auth
def me_route():
    """Current user with role permissions and business profile ids."""
    user = g.current_user
    distributor = directory_service.get_distributor_for_user(user.id)
    client = directory_service.get_client_for_user(user.id)
    return jsonify({
        "user": user.to_dict(),
        "permissions": permissions_for(user.role),
        "distributor": distributor.to_dict() if distributor else None,
        "client": client.to_dict() if client else None,
    }), 200
