from werkzeug.security import generate_password_hash

from app import app, db
from models.models import User, ROLE_ADMIN, ROLE_EMPLOYEE, ROLE_MANAGER

SEED_USERS = [
    ('admin', 'Sarah Johnson', 'sarah.johnson@example.com', ROLE_ADMIN, True),
    ('manager', 'Michael Rodriguez', 'michael.rodriguez@example.com', ROLE_MANAGER, True),
    ('employee', 'David Thompson', 'david.thompson@example.com', ROLE_EMPLOYEE, False),
]

with app.app_context():
    db.create_all()
    for username, name, email, role, alerts in SEED_USERS:
        if User.query.filter_by(username=username).first():
            continue
        db.session.add(User(
            username=username,
            name=name,
            email=email,
            password=generate_password_hash('password123'),
            role=role,
            receives_high_priority_emails=alerts,
        ))
    db.session.commit()

    print('Seed data inserted successfully!')
