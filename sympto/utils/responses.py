# /sympto/utils/responses.py
from flask import jsonify

from sympto.utils.time_util import utcnow, isoformat


def success_response(data=None, message=None, status=200):
    body = {'success': True}
    if message is not None:
        body['message'] = message
    if data is not None:
        body['data'] = data
    return jsonify(body), status


def error_response(code, message, status, details=None):
    error = {
        'code': code,
        'message': message,
        'timestamp': isoformat(utcnow()),
    }
    if details is not None:
        error['details'] = details
    return jsonify({'success': False, 'error': error}), status
