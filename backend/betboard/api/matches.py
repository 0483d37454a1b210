from flask import Blueprint, jsonify, request

from betboard.auth import current_user_id
from betboard.services.ledger import InvalidInput, get_ledger
from betboard.socketio_events import broadcast_match_update, broadcast_ranking

matches = Blueprint('matches', __name__)


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise InvalidInput('Expected a JSON object')
    return data


@matches.route('', methods=['GET'])
def list_open_matches():
    return jsonify([m.to_dict() for m in get_ledger().list_open_matches()])


@matches.route('/<int:match_id>', methods=['GET'])
def get_match(match_id):
    return jsonify(get_ledger().get_match(match_id).to_dict())


@matches.route('', methods=['POST'])
def create_match():
    data = _json_body()
    ledger = get_ledger()
    match = ledger.create_match(
        current_user_id(),
        data.get('player1'),
        data.get('player2'),
        data.get('format'),
        data.get('start_time'),
    )
    payload = ledger.get_match(match.id).to_dict()
    broadcast_match_update(payload)
    return jsonify(payload), 201


@matches.route('/<int:match_id>', methods=['PATCH'])
def edit_match(match_id):
    data = _json_body()
    ledger = get_ledger()
    ledger.edit_match(current_user_id(), match_id, data)
    payload = ledger.get_match(match_id).to_dict()
    broadcast_match_update(payload)
    return jsonify(payload)


@matches.route('/<int:match_id>/result', methods=['POST'])
def declare_result(match_id):
    data = _json_body()
    ledger = get_ledger()
    report = ledger.declare_result(current_user_id(), match_id, data.get('outcome'))
    broadcast_match_update(ledger.get_match(match_id).to_dict())
    broadcast_ranking([row.to_dict() for row in ledger.ranking()])
    return jsonify(report.to_dict())


@matches.route('/<int:match_id>/result', methods=['DELETE'])
def undo_result(match_id):
    ledger = get_ledger()
    report = ledger.undo_result(current_user_id(), match_id)
    broadcast_match_update(ledger.get_match(match_id).to_dict())
    broadcast_ranking([row.to_dict() for row in ledger.ranking()])
    return jsonify(report.to_dict())


@matches.route('/<int:match_id>/ledger', methods=['GET'])
def match_ledger(match_id):
    entries = get_ledger().ledger_entries(current_user_id(), match_id)
    return jsonify([entry.to_dict() for entry in entries])
