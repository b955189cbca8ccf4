import uuid

import pytest

from cashback_engine.errors import AuthenticationError, CustomerNotFoundError, DuplicateError, ValidationError
from cashback_engine.services.customer_service import (
    authenticate_admin,
    authenticate_customer,
    create_admin,
    get_customer,
    normalize_phone,
    register_customer,
)


class TestRegistration:
    def test_register_normalizes_phone_and_hashes_password(self, db, clock):
        customer = register_customer(
            db, phone="(85) 99999-1234", password="segredo", name=" Ana ", email="ANA@example.com", now=clock()
        )

        assert customer.phone == "85999991234"
        assert customer.name == "Ana"
        assert customer.email == "ana@example.com"
        assert customer.password_hash != "segredo"
        assert customer.created_at == clock()

    def test_phone_must_be_unique(self, db, customer):
        with pytest.raises(DuplicateError):
            register_customer(db, phone=customer.phone, password="segredo")

    def test_email_must_be_unique(self, db, customer):
        with pytest.raises(DuplicateError):
            register_customer(db, phone="85900001111", password="segredo", email="Maria@example.com")

    def test_short_password(self, db):
        with pytest.raises(ValidationError):
            register_customer(db, phone="85900001111", password="123")

    @pytest.mark.parametrize("phone", ["", "123", None])
    def test_invalid_phone(self, phone):
        with pytest.raises(ValidationError):
            normalize_phone(phone)


class TestAuthentication:
    def test_login_stamps_last_login(self, db, customer, clock):
        logged = authenticate_customer(db, phone="85 99999-0000", password="segredo123", now=clock())
        assert logged.id == customer.id
        assert logged.last_login_at == clock()

    def test_wrong_password(self, db, customer, clock):
        with pytest.raises(AuthenticationError):
            authenticate_customer(db, phone=customer.phone, password="errada", now=clock())

    def test_unknown_phone(self, db, clock):
        with pytest.raises(AuthenticationError):
            authenticate_customer(db, phone="85900000000", password="segredo", now=clock())

    def test_admin_login(self, db):
        admin = create_admin(db, email="Gerente@example.com", password="admin123")
        assert authenticate_admin(db, email="gerente@example.com", password="admin123").id == admin.id
        with pytest.raises(AuthenticationError):
            authenticate_admin(db, email="gerente@example.com", password="nope")


def test_get_customer(db, customer):
    assert get_customer(db, customer.id).phone == customer.phone
    with pytest.raises(CustomerNotFoundError):
        get_customer(db, uuid.uuid4())
