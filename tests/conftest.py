import pytest
from rest_framework.test import APIClient

from accounts.models import User
from merchants.models import Merchant
from merchants.services import create_merchant


@pytest.fixture
def admin_user(db):
    return User.objects.create_user(
        email="admin@test.com",
        password="testpass123",
        first_name="Admin",
        last_name="User",
        role=User.Role.ADMIN,
    )


@pytest.fixture
def rep_user(db):
    return User.objects.create_user(
        email="rep@test.com",
        password="testpass123",
        first_name="Sami",
        last_name="Rep",
        role=User.Role.REP,
    )


@pytest.fixture
def other_rep(db):
    return User.objects.create_user(
        email="other.rep@test.com",
        password="testpass123",
        first_name="Layla",
        last_name="Rep",
        role=User.Role.REP,
    )


@pytest.fixture
def read_only_user(db):
    return User.objects.create_user(
        email="viewer@test.com",
        password="testpass123",
        first_name="View",
        last_name="Only",
        role=User.Role.READ_ONLY,
    )


@pytest.fixture
def merchant(rep_user, admin_user):
    return create_merchant(
        name="Ka3kawi Restaurant",
        category=Merchant.Category.FOOD,
        assigned_rep=rep_user,
        actor=admin_user,
        contact_person_name="Ahmad Ka3kawi",
        contact_phone="+962791111111",
        location="Rainbow Street, Amman",
    )


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def admin_client(admin_user):
    client = APIClient()
    client.force_authenticate(user=admin_user)
    return client


@pytest.fixture
def rep_client(rep_user):
    client = APIClient()
    client.force_authenticate(user=rep_user)
    return client
