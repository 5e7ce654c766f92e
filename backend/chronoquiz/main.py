from flask import Blueprint, request, jsonify, session
from flask_login import login_user, logout_user, login_required, current_user
from chronoquiz import db
from chronoquiz.models import User

main = Blueprint('main', __name__)

@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the chronoquiz server!'})

@main.route('/users/register', methods=['POST'])
def register():
    data = request.get_json(silent=True) or {}
    if not data.get('username') or not data.get('password'):
        return jsonify({'error': 'Missing username or password'}), 400

    if User.query.filter_by(username=data['username']).first():
        return jsonify({'error': 'Username already exists'}), 400

    user = User(username=data['username'])
    user.set_password(data['password'])
    db.session.add(user)
    db.session.commit()
    session.pop('quiz_key', None)
    login_user(user)

    return jsonify({'message': 'User created successfully', 'user': user.to_dict()}), 201

@main.route('/users/login', methods=['POST'])
def login():
    data = request.get_json(silent=True) or {}
    user = User.query.filter_by(username=data.get('username')).first()
    if user and user.check_password(data.get('password') or ''):
        session.pop('quiz_key', None)
        login_user(user, remember=True)
        return jsonify({'message': 'Logged in successfully.', 'user': user.to_dict()})
    return jsonify({'error': 'Invalid username or password'}), 401

@main.route('/users/logout', methods=['POST'])
@login_required
def logout():
    logout_user()
    # A quiz belongs to whoever started it
    session.pop('quiz_key', None)
    return jsonify({'message': 'Logged out successfully.'})

@main.route('/users/me')
@login_required
def me():
    return jsonify({'user': current_user.to_dict()})
