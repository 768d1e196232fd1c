from datetime import datetime, timezone

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


class User(db.Model):
    __tablename__ = 'Users'

    UserId = db.Column(db.Integer, primary_key=True, autoincrement=True)
    Email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    Name = db.Column(db.String(255), nullable=True)
    Password = db.Column(db.String(255), nullable=True)  # bcrypt hash
    CreatedAt = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc), nullable=False)

    def to_dict(self):
        # Never expose the password hash
        return {
            'id': self.UserId,
            'email': self.Email,
            'name': self.Name,
            'created_at': self.CreatedAt.isoformat() if self.CreatedAt else None,
        }

    def __repr__(self):
        return f'<User {self.UserId} {self.Email}>'
