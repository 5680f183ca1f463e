# marketplace/responses.py
from flask import jsonify


def ok(data=None, message=None, status=200):
    body = {'success': True}
    if message:
        body['message'] = message
    if data is not None:
        body['data'] = data
    return jsonify(body), status


def created(data=None, message=None):
    return ok(data, message, status=201)


def paginated(page, items, message=None, **extra):
    """``items`` are the already-serialised rows of ``page``; ``extra`` lands at the top level."""
    body = {'success': True, 'data': items, 'pagination': page.meta()}
    if message:
        body['message'] = message
    body.update(extra)
    return jsonify(body), 200
