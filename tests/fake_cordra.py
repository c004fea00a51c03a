"""
In-process stand-in for the Cordra REST API, used by the client tests.
"""

import base64
import json
import time

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding
from flask import Flask, Response, jsonify, request


JWT_BEARER_GRANT = "urn:ietf:params:oauth:grant-type:jwt-bearer"


def _b64url_decode(segment):
    return base64.urlsafe_b64decode(segment + '=' * (-len(segment) % 4))


def _resolve_pointer(content, pointer):
    for part in [p for p in pointer.split('/') if p]:
        if isinstance(content, list):
            content = content[int(part)]
        else:
            content = content[part]
    return content


def _set_pointer(content, pointer, value):
    parts = [p for p in pointer.split('/') if p]
    target = _resolve_pointer(content, '/'.join(parts[:-1]))
    target[parts[-1]] = value


def create_fake_cordra(users=None, public_keys=None) -> Flask:
    """
    Create a Flask app imitating the parts of Cordra the client talks to.

    Args:
        users: username -> password
        public_keys: username -> RSA public key accepted for JWT assertions
    """
    app = Flask(__name__)

    state = {
        'users': dict(users or {'admin': 'password'}),
        'public_keys': dict(public_keys or {}),
        'tokens': {},
        'issued': 0,
        'objects': {},
        'payloads': {},
        'versions': {},
        'counter': 0,
        'handle_updates': 0,
        'requests': [],
    }
    app.config['CORDRA_STATE'] = state

    @app.before_request
    def record_request():
        state['requests'].append({
            'method': request.method,
            'path': request.path,
            'query': request.query_string.decode('utf-8'),
            'headers': dict(request.headers),
        })

    def error(status, message):
        return jsonify({'message': message}), status

    def current_user():
        auth = request.headers.get('Authorization', '')
        if auth.startswith('Bearer '):
            return state['tokens'].get(auth[len('Bearer '):])
        if auth.startswith('Basic '):
            decoded = base64.b64decode(auth[len('Basic '):]).decode('utf-8')
            username, _, password = decoded.partition(':')
            if state['users'].get(username) == password:
                return username
        return None

    def issue_token(username):
        state['issued'] += 1
        token = f"token-{state['issued']}"
        state['tokens'][token] = username
        return token

    def verify_assertion(assertion):
        header, claims, signature = assertion.split('.')
        issuer = json.loads(_b64url_decode(claims))['iss']
        key = state['public_keys'].get(issuer)
        if key is None:
            return None
        try:
            key.verify(_b64url_decode(signature), f"{header}.{claims}".encode('ascii'),
                       padding.PKCS1v15(), hashes.SHA256())
        except InvalidSignature:
            return None
        return issuer

    def require_user():
        user = current_user()
        if user is None:
            return None, error(401, 'Authentication failed')
        return user, None

    def describe(obj):
        result = dict(obj)
        result['payloads'] = [
            {k: v for k, v in p.items() if k != 'body'}
            for p in state['payloads'].get(obj['id'], {}).values()
        ]
        return result

    def apply_form(obj):
        if 'content' in request.form:
            obj['content'] = json.loads(request.form['content'])
        if 'acl' in request.form:
            obj['acl'] = json.loads(request.form['acl'])
        if 'userMetadata' in request.form:
            obj['userMetadata'] = json.loads(request.form['userMetadata'])
        payloads = state['payloads'].setdefault(obj['id'], {})
        for name in request.form.getlist('payloadToDelete'):
            payloads.pop(name, None)
        for name, storage in request.files.items():
            body = storage.read()
            payloads[name] = {
                'name': name,
                'filename': storage.filename,
                'mediaType': storage.mimetype,
                'size': len(body),
                'body': body,
            }

    # ============== Authentication ==============

    @app.route('/auth/token', methods=['POST'])
    def auth_token():
        body = request.get_json(force=True)
        username = None
        if body.get('grant_type') == 'password':
            if state['users'].get(body.get('username')) == body.get('password'):
                username = body['username']
        elif body.get('grant_type') == JWT_BEARER_GRANT:
            username = verify_assertion(body.get('assertion', ''))
        if username is None:
            return jsonify({'error': 'invalid_grant', 'error_description': 'Authentication failed'}), 401
        return jsonify({
            'access_token': issue_token(username),
            'token_type': 'Bearer',
            'active': True,
            'username': username,
            'userId': username,
        })

    @app.route('/auth/revoke', methods=['POST'])
    def auth_revoke():
        body = request.get_json(force=True)
        state['tokens'].pop(body.get('token'), None)
        return jsonify({'active': False})

    @app.route('/check-credentials')
    def check_credentials():
        user = current_user()
        if user is None:
            return jsonify({'active': False})
        result = {'active': True, 'userId': user, 'username': user}
        if request.args.get('full') == 'true':
            result['typesPermittedToCreate'] = ['Document']
            result['groupIds'] = []
        return jsonify(result)

    @app.route('/users/this/password', methods=['PUT'])
    def change_password():
        user, failure = require_user()
        if failure:
            return failure
        state['users'][user] = request.get_data(as_text=True)
        return jsonify({'success': True})

    @app.route('/adminPassword', methods=['PUT'])
    def change_admin_password():
        user, failure = require_user()
        if failure:
            return failure
        if user != 'admin':
            return error(403, 'Forbidden')
        state['users']['admin'] = request.get_json(force=True)['password']
        return jsonify({'success': True})

    # ============== Objects ==============

    @app.route('/objects', methods=['GET'])
    def search():
        user, failure = require_user()
        if failure:
            return failure
        query = request.args.get('query', '')
        results = list(state['objects'].values())
        if query != '*:*':
            field, _, value = query.partition(':')
            results = [o for o in results if str(o.get(field)) == value]
        for sort_field in reversed(request.args.getlist('sortFields')):
            name, _, direction = sort_field.partition(' ')
            results.sort(key=lambda o: str(_resolve_pointer(o['content'], name)
                                          if name.startswith('/') else o.get(name)),
                         reverse=direction == 'DESC')
        page_num = int(request.args.get('pageNum', 0))
        page_size = int(request.args.get('pageSize', -1))
        size = len(results)
        if page_size > 0:
            results = results[page_num * page_size:(page_num + 1) * page_size]
        if 'ids' in request.args:
            results = [o['id'] for o in results]
        else:
            results = [describe(o) for o in results]
        return jsonify({'pageNum': page_num, 'pageSize': page_size, 'size': size, 'results': results})

    @app.route('/objects', methods=['POST'])
    def create_object():
        user, failure = require_user()
        if failure:
            return failure
        state['counter'] += 1
        object_id = request.args.get('handle') or f"test/{state['counter']}{request.args.get('suffix', '')}"
        now = int(time.time() * 1000)
        obj = {
            'id': object_id,
            'type': request.args['type'],
            'metadata': {'createdOn': now, 'createdBy': user, 'modifiedOn': now,
                         'modifiedBy': user, 'txnId': state['counter']},
        }
        apply_form(obj)
        result = describe(obj)
        if 'dryRun' in request.args:
            state['payloads'].pop(object_id, None)
            return jsonify(result)
        state['objects'][object_id] = obj
        if 'includeResponseContext' in request.args:
            result['responseContext'] = {'created': True}
        return jsonify(result)

    @app.route('/objects/<path:object_id>', methods=['GET'])
    def get_object(object_id):
        user, failure = require_user()
        if failure:
            return failure
        obj = state['objects'].get(object_id)
        if obj is None:
            return error(404, 'Missing object')
        if 'payload' in request.args:
            payload = state['payloads'].get(object_id, {}).get(request.args['payload'])
            if payload is None:
                return error(404, 'Missing payload')
            body = payload['body']
            range_header = request.headers.get('Range')
            if range_header:
                start, _, end = range_header[len('bytes='):].partition('-')
                if not start:
                    body = body[-int(end):]
                elif not end:
                    body = body[int(start):]
                else:
                    body = body[int(start):int(end) + 1]
                return Response(body, status=206, mimetype=payload['mediaType'])
            return Response(body, mimetype=payload['mediaType'])
        if 'jsonPointer' in request.args:
            try:
                return jsonify(_resolve_pointer(obj['content'], request.args['jsonPointer']))
            except (KeyError, IndexError):
                return error(400, 'Invalid JSON Pointer')
        result = describe(obj)
        if 'includeResponseContext' in request.args:
            result['responseContext'] = {'permission': 'WRITE'}
        return jsonify(result)

    @app.route('/objects/<path:object_id>', methods=['PUT'])
    def update_object(object_id):
        user, failure = require_user()
        if failure:
            return failure
        obj = state['objects'].get(object_id)
        if obj is None:
            return error(404, 'Missing object')
        if 'jsonPointer' in request.args:
            _set_pointer(obj['content'], request.args['jsonPointer'], request.get_json(force=True))
        else:
            apply_form(obj)
        obj['metadata']['modifiedBy'] = user
        return jsonify(describe(obj))

    @app.route('/objects/<path:object_id>', methods=['DELETE'])
    def delete_object(object_id):
        user, failure = require_user()
        if failure:
            return failure
        if state['objects'].pop(object_id, None) is None:
            return error(404, 'Missing object')
        state['payloads'].pop(object_id, None)
        return Response('', status=200)

    # ============== ACLs and Versions ==============

    @app.route('/acls/<path:object_id>', methods=['GET', 'PUT'])
    def acls(object_id):
        user, failure = require_user()
        if failure:
            return failure
        obj = state['objects'].get(object_id)
        if obj is None:
            return error(404, 'Missing object')
        if request.method == 'PUT':
            obj['acl'] = request.get_json(force=True)
        return jsonify(obj.get('acl', {}))

    @app.route('/versions', methods=['GET', 'POST'])
    def versions():
        user, failure = require_user()
        if failure:
            return failure
        object_id = request.args.get('objectId')
        obj = state['objects'].get(object_id)
        if obj is None:
            return error(404, 'Missing object')
        published = state['versions'].setdefault(object_id, [])
        if request.method == 'POST':
            info = {
                'id': f"{object_id}/v{len(published) + 1}",
                'type': obj['type'],
                'versionOf': object_id,
                'publishedBy': user,
                'publishedOn': int(time.time() * 1000),
            }
            published.append(info)
            return jsonify(info)
        tip = {'id': object_id, 'type': obj['type'], 'isTip': True}
        return jsonify(published + [tip])

    # ============== Administration ==============

    @app.route('/updateHandles', methods=['GET', 'POST'])
    def update_handles():
        user, failure = require_user()
        if failure:
            return failure
        if request.method == 'POST':
            state['handle_updates'] += 1
            return Response('', status=200)
        return jsonify({'inProgress': False, 'total': len(state['objects']),
                        'progress': len(state['objects'])})

    @app.route('/uploadObjects', methods=['PUT'])
    def upload_objects():
        user, failure = require_user()
        if failure:
            return failure
        if 'deleteCurrentObjects' in request.args:
            state['objects'].clear()
        for obj in request.get_json(force=True):
            state['objects'][obj['id']] = obj
        return jsonify({'msg': 'success', 'count': len(state['objects'])})

    @app.route('/listMethods')
    def list_methods():
        user, failure = require_user()
        if failure:
            return failure
        if 'static' in request.args:
            return jsonify(['countObjects'])
        return jsonify(['echo', 'noop'])

    @app.route('/call', methods=['POST'])
    def call():
        user, failure = require_user()
        if failure:
            return failure
        method = request.args.get('method')
        if method == 'echo':
            return jsonify({'echo': request.get_json(force=True),
                            'objectId': request.args.get('objectId'),
                            'type': request.args.get('type')})
        if method == 'noop':
            response = Response(b'', status=200)
            del response.headers['Content-Type']
            return response
        return error(400, f"Unknown method {method}")

    return app
