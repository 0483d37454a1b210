import hmac

from flask import Blueprint, abort, current_app, jsonify, request
from flask_login import current_user, login_required, login_user, logout_user

from betboard.services.ledger import Identity, Unauthenticated, get_ledger

auth = Blueprint('auth', __name__)


def current_user_id():
    if current_user and current_user.is_authenticated:
        return current_user.get_id()
    return None


def _bridge_token_ok(token: str) -> bool:
    supplied = request.headers.get('Authorization', '')
    return hmac.compare_digest(supplied.encode(), f'Bearer {token}'.encode())


@auth.route('/session', methods=['POST'])
def open_session():
    """Accept an identity the external login provider has already verified.

    The gateway sends the provider's user payload (``id``, ``username``,
    ``avatar``) with ``Authorization: Bearer <IDENTITY_BRIDGE_TOKEN>``.
    """
    token = current_app.config.get('IDENTITY_BRIDGE_TOKEN')
    if not token:
        abort(404)
    if not _bridge_token_ok(token):
        raise Unauthenticated('Invalid identity bridge token')
    data = request.get_json(silent=True) or {}
    identity = Identity(
        user_id=str(data.get('id') or ''),
        display_name=data.get('username') or '',
        avatar_ref=data.get('avatar'),
    )
    ledger = get_ledger()
    user = ledger.record_login(identity)
    login_user(user, remember=True)
    return jsonify({
        'user': user.to_dict(current_app.config.get('AVATAR_URL_TEMPLATE')),
        'is_admin': ledger.is_admin(user.id),
    })


@auth.route('/logout', methods=['POST'])
@login_required
def logout():
    logout_user()
    return jsonify({'message': 'Logged out successfully.'})
