from datetime import date
from sympto.extensions import db, bcrypt
from sympto.utils.time_util import utcnow, isoformat

PASSWORD_MIN_LENGTH = 8


class User(db.Model):
    """Account holder. Name and date of birth are stored encrypted."""
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    # Ciphertext envelopes at rest, plaintext once read through the repository
    first_name = db.Column(db.Text, nullable=False)
    last_name = db.Column(db.Text, nullable=False)
    date_of_birth = db.Column(db.Text)

    email_verified = db.Column(db.Boolean, default=False, nullable=False)
    email_verification_token = db.Column(db.String(128), index=True)
    email_verification_expires = db.Column(db.DateTime)
    password_reset_token = db.Column(db.String(128), index=True)
    password_reset_expires = db.Column(db.DateTime)
    last_login = db.Column(db.DateTime)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    # --- Relationships ---
    assessments = db.relationship(
        'Assessment',
        back_populates='user',
        cascade="all, delete-orphan",
    )
    consent = db.relationship(
        'Consent',
        back_populates='user',
        uselist=False,
        cascade="all, delete-orphan",
    )

    def set_password(self, password: str) -> None:
        """Hashes and sets the user's password, enforcing complexity rules."""
        if not self.validate_password_strength(password):
            raise ValueError(
                "Password must be at least 8 characters and contain an uppercase letter, "
                "a lowercase letter and a number"
            )
        self.password_hash = bcrypt.generate_password_hash(password).decode('utf-8')

    def check_password(self, password: str) -> bool:
        if not password or not self.password_hash:
            return False
        return bcrypt.check_password_hash(self.password_hash, password)

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}"

    @property
    def age(self):
        dob = self.date_of_birth
        if not isinstance(dob, date):
            return None
        today = utcnow().date()
        return today.year - dob.year - ((today.month, today.day) < (dob.month, dob.day))

    def to_dict(self):
        """Serializes the User for API responses. Expects decrypted fields."""
        dob = self.date_of_birth
        return {
            'id': self.id,
            'email': self.email,
            'firstName': self.first_name,
            'lastName': self.last_name,
            'fullName': self.full_name,
            'dateOfBirth': dob.isoformat() if isinstance(dob, date) else dob,
            'age': self.age,
            'emailVerified': self.email_verified,
            'isActive': self.is_active,
            'lastLogin': isoformat(self.last_login),
            'createdAt': isoformat(self.created_at),
            'updatedAt': isoformat(self.updated_at),
        }

    @staticmethod
    def validate_password_strength(password) -> bool:
        """Validates that a password meets the required complexity."""
        return (isinstance(password, str) and
                len(password) >= PASSWORD_MIN_LENGTH and
                any(c.isupper() for c in password) and
                any(c.islower() for c in password) and
                any(c.isdigit() for c in password))
