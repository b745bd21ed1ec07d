# users/tests/test_users.py

from django.contrib.auth import get_user_model
from django.contrib.auth.models import AnonymousUser
from django.test import RequestFactory, TestCase

from users.permissions import IsBackOffice

User = get_user_model()


class UserManagerTests(TestCase):
    """
    GUARANTEES:
    - Email is the identity and is normalized
    - New users are customers unless a role is given
    """

    def test_create_user_defaults_to_customer(self):
        user = User.objects.create_user(email="  Juan@Example.COM ", password="pw-12345")

        self.assertEqual(user.email, "Juan@example.com")
        self.assertEqual(user.role, User.ROLE_CUSTOMER)
        self.assertTrue(user.check_password("pw-12345"))
        self.assertFalse(user.is_back_office)

    def test_email_required(self):
        with self.assertRaises(ValueError):
            User.objects.create_user(email="", password="pw")

    def test_superuser_is_admin(self):
        admin = User.objects.create_superuser(email="root@example.com", password="pw-12345")

        self.assertEqual(admin.role, User.ROLE_ADMIN)
        self.assertTrue(admin.is_staff)
        self.assertTrue(admin.is_back_office)

    def test_display_name(self):
        named = User(email="maria@example.com", first_name="Maria", last_name="Santos")
        unnamed = User(email="pedro@example.com")

        self.assertEqual(named.display_name, "Maria Santos")
        self.assertEqual(unnamed.display_name, "pedro")


class BackOfficePermissionTests(TestCase):
    def setUp(self):
        self.factory = RequestFactory()

    def _allowed(self, user):
        request = self.factory.get("/")
        request.user = user
        return IsBackOffice().has_permission(request, view=None)

    def test_roles(self):
        self.assertTrue(self._allowed(User(email="a@example.com", role=User.ROLE_ADMIN)))
        self.assertTrue(self._allowed(User(email="p@example.com", role=User.ROLE_PHARMACIST)))
        self.assertFalse(self._allowed(User(email="c@example.com", role=User.ROLE_CUSTOMER)))
        self.assertFalse(self._allowed(AnonymousUser()))
