from flask import Blueprint, current_app, jsonify
from flask_login import current_user

from betboard.services.ledger import get_ledger

main = Blueprint('main', __name__)


@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the betboard server!'})


@main.route('/api/me')
def me():
    if not current_user.is_authenticated:
        return jsonify({'user': None, 'is_admin': False})
    return jsonify({
        'user': current_user.to_dict(current_app.config.get('AVATAR_URL_TEMPLATE')),
        'is_admin': get_ledger().is_admin(current_user.id),
    })


@main.route('/api/ranking')
def ranking():
    return jsonify([row.to_dict() for row in get_ledger().ranking()])
