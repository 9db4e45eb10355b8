from flask import Blueprint, current_app, jsonify, request, session

from meldb.db import StoreError

main = Blueprint('main', __name__)


def _credentials():
    data = request.get_json(silent=True) or request.form
    return data.get('name'), data.get('password')


@main.route('/')
def home():
    return jsonify(status='ok')


@main.route('/login', methods=['POST'])
def login():
    name, password = _credentials()
    if not name or not password:
        return jsonify(error='name and password are required'), 400
    try:
        ok = current_app.store.check_password(name, password)
    except StoreError as exc:
        current_app.logger.error('login for %s failed: %s', name, exc)
        return jsonify(error='database error'), 500
    if not ok:
        return jsonify(error='Invalid credentials.'), 401
    session['user'] = name
    return jsonify(user=name)


@main.route('/logout', methods=['POST'])
def logout():
    session.pop('user', None)
    return jsonify(status='logged out')


@main.route('/projects')
def projects():
    # require login to list projects
    name = session.get('user')
    if not name:
        return jsonify(error='Please log in.'), 401
    store = current_app.store
    try:
        items = [{'id': pid, 'name': pname} for pid, pname in store.iter_visible_projects(name)]
        manager = store.is_manager(name)
    except StoreError as exc:
        current_app.logger.error('listing projects for %s failed: %s', name, exc)
        return jsonify(error='database error'), 500
    return jsonify(user=name, is_manager=bool(manager), projects=items)
