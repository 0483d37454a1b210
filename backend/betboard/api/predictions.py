from flask import Blueprint, jsonify, request

from betboard.auth import current_user_id
from betboard.services.ledger import InvalidInput, Unauthenticated, get_ledger

predictions = Blueprint('predictions', __name__)


def _match_id(value) -> int:
    """Accept a JSON integer or a string of ASCII digits."""
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        text = value.strip()
        if text.isascii() and text.isdigit():
            return int(text)
    raise InvalidInput('match_id must be an integer')


@predictions.route('', methods=['POST'])
def submit_prediction():
    user_id = current_user_id()
    if not user_id:
        raise Unauthenticated('Login required to predict')
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        raise InvalidInput('Expected a JSON object')
    prediction = get_ledger().submit(user_id, _match_id(data.get('match_id')), data.get('bet_value'))
    return jsonify({'message': 'Prediction saved', 'prediction': prediction.to_dict()})


@predictions.route('/history', methods=['GET'])
def history():
    # Anonymous visitors simply have no history
    entries = get_ledger().history(current_user_id())
    return jsonify([entry.to_dict() for entry in entries])
