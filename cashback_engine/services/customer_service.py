import logging
import re
from datetime import datetime

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from werkzeug.security import check_password_hash, generate_password_hash

from cashback_engine.errors import AuthenticationError, CustomerNotFoundError, DuplicateError, ValidationError
from cashback_engine.models.admin import Admin
from cashback_engine.models.customer import Customer


logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6


def normalize_phone(value: str | None) -> str:
    digits = re.sub(r"\D", "", value or "")
    if len(digits) < 10:
        raise ValidationError("Telefone inválido")
    return digits


def _normalize_email(value: str | None) -> str | None:
    v = (value or "").strip().lower()
    return v or None


def get_customer(db: Session, customer_id):
    customer = db.query(Customer).filter(Customer.id == customer_id).first()
    if not customer:
        raise CustomerNotFoundError()
    return customer


def register_customer(
    db: Session,
    *,
    phone: str,
    password: str,
    name: str | None = None,
    email: str | None = None,
    birthdate=None,
    now: datetime | None = None,
) -> Customer:
    phone = normalize_phone(phone)
    email = _normalize_email(email)
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"A senha deve ter pelo menos {MIN_PASSWORD_LENGTH} caracteres")

    if db.query(Customer.id).filter(Customer.phone == phone).first():
        raise DuplicateError("Telefone já cadastrado")
    if email and db.query(Customer.id).filter(Customer.email == email).first():
        raise DuplicateError("E-mail já cadastrado")

    customer = Customer(
        phone=phone,
        email=email,
        name=(name or "").strip() or None,
        birthdate=birthdate,
        password_hash=generate_password_hash(password),
    )
    if now is not None:
        customer.created_at = now
        customer.updated_at = now
    db.add(customer)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise DuplicateError("Telefone ou e-mail já cadastrado")
    db.refresh(customer)

    logger.info("customer registered", extra={"customer_id": str(customer.id)})
    return customer


def authenticate_customer(db: Session, *, phone: str, password: str, now: datetime) -> Customer:
    try:
        phone = normalize_phone(phone)
    except ValidationError:
        raise AuthenticationError()

    customer = db.query(Customer).filter(Customer.phone == phone).first()
    if not customer or not customer.password_hash or not check_password_hash(customer.password_hash, password or ""):
        logger.info("customer login failed", extra={"phone_suffix": phone[-4:]})
        raise AuthenticationError("Telefone ou senha incorretos")

    customer.last_login_at = now
    db.commit()
    db.refresh(customer)
    return customer


def create_admin(db: Session, *, email: str, password: str, role: str = "admin") -> Admin:
    email = _normalize_email(email)
    if not email:
        raise ValidationError("E-mail é obrigatório")
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"A senha deve ter pelo menos {MIN_PASSWORD_LENGTH} caracteres")
    if db.query(Admin.id).filter(Admin.email == email).first():
        raise DuplicateError("E-mail já cadastrado")

    admin = Admin(email=email, password_hash=generate_password_hash(password), role=role)
    db.add(admin)
    db.commit()
    db.refresh(admin)
    return admin


def authenticate_admin(db: Session, *, email: str, password: str) -> Admin:
    admin = db.query(Admin).filter(Admin.email == _normalize_email(email)).first()
    if not admin or not check_password_hash(admin.password_hash, password or ""):
        raise AuthenticationError()
    return admin
