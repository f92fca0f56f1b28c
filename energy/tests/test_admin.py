from django.db import transaction

from energy.application.accounts import _lock_target_and_admins
from energy.domain.exceptions import NotFound
from energy.models import AuditLog, User
from energy.tests.base import ApiTestCase


class AdminEndpointTest(ApiTestCase):
    """
    Tests for /api/admin

    The last unblocked admin can be neither demoted nor blocked, and every
    successful change leaves an audit row.
    """

    def setUp(self):
        super().setUp()
        self.admin = self.make_user("admin@example.com", role=User.ROLE_ADMIN)
        self.client.force_authenticate(user=self.admin)

    def test_non_admin_is_forbidden(self):
        response = self.client_for(self.user).get("/api/admin/users")

        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.data["message"], "Admin only")

    def test_list_users_with_filters(self):
        self.make_user("blocked@example.com", is_blocked=True)

        everyone = self.client.get("/api/admin/users")
        blocked = self.client.get("/api/admin/users", {"is_blocked": "true"})
        admins = self.client.get("/api/admin/users", {"role": "admin"})
        search = self.client.get("/api/admin/users", {"q": "OWNER"})

        self.assertEqual(everyone.data["total"], 3)
        self.assertEqual(everyone.data["limit"], 50)
        self.assertEqual([u["email"] for u in blocked.data["items"]], ["blocked@example.com"])
        self.assertEqual([u["email"] for u in admins.data["items"]], ["admin@example.com"])
        self.assertEqual([u["email"] for u in search.data["items"]], ["owner@example.com"])

    def test_list_users_clamps_paging(self):
        response = self.client.get("/api/admin/users", {"limit": "1000", "offset": "-5"})

        self.assertEqual(response.data["limit"], 200)
        self.assertEqual(response.data["offset"], 0)

    def test_list_users_rejects_bad_role(self):
        response = self.client.get("/api/admin/users", {"role": "owner"})

        self.assertEqual(response.status_code, 400)

    def test_promote_user_writes_audit(self):
        response = self.client.patch(f"/api/admin/users/{self.user.id}/role", {"role": "admin"})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["role"], "admin")
        entry = AuditLog.objects.get()
        self.assertEqual(entry.action, "USER_ROLE_CHANGE")
        self.assertEqual(entry.admin_id, self.admin.id)
        self.assertEqual(entry.target_user_id, self.user.id)
        self.assertEqual(entry.details, {"from": "user", "to": "admin", "email": "owner@example.com"})

    def test_invalid_role_is_rejected(self):
        response = self.client.patch(f"/api/admin/users/{self.user.id}/role", {"role": "root"})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["message"], "role must be user or admin")

    def test_unknown_user_is_not_found(self):
        response = self.client.patch("/api/admin/users/99999/block", {"is_blocked": True})

        self.assertEqual(response.status_code, 404)

    def test_sole_admin_cannot_block_self(self):
        response = self.client.patch(f"/api/admin/users/{self.admin.id}/block", {"is_blocked": True})

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.data["user_id"], self.admin.id)
        self.admin.refresh_from_db()
        self.assertFalse(self.admin.is_blocked)
        self.assertEqual(AuditLog.objects.count(), 0)

    def test_sole_admin_cannot_demote_self(self):
        response = self.client.patch(f"/api/admin/users/{self.admin.id}/role", {"role": "user"})

        self.assertEqual(response.status_code, 409)
        self.admin.refresh_from_db()
        self.assertEqual(self.admin.role, User.ROLE_ADMIN)

    def test_admin_cannot_block_self_when_others_exist(self):
        self.make_user("second-admin@example.com", role=User.ROLE_ADMIN)

        response = self.client.patch(f"/api/admin/users/{self.admin.id}/block", {"is_blocked": True})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["message"], "cannot block own account")

    def test_admin_can_demote_another_admin(self):
        other = self.make_user("second-admin@example.com", role=User.ROLE_ADMIN)

        response = self.client.patch(f"/api/admin/users/{other.id}/role", {"role": "user"})

        self.assertEqual(response.status_code, 200)
        other.refresh_from_db()
        self.assertEqual(other.role, User.ROLE_USER)

    def test_block_and_unblock_are_audited(self):
        self.client.patch(f"/api/admin/users/{self.user.id}/block", {"is_blocked": True})
        response = self.client.patch(f"/api/admin/users/{self.user.id}/block", {"is_blocked": False})

        self.assertEqual(response.status_code, 200)
        self.assertFalse(response.data["is_blocked"])
        self.assertEqual(
            list(AuditLog.objects.order_by("id").values_list("action", flat=True)),
            ["USER_BLOCK", "USER_UNBLOCK"],
        )

    def test_block_requires_boolean(self):
        response = self.client.patch(f"/api/admin/users/{self.user.id}/block", {"is_blocked": "maybe"})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["message"], "is_blocked must be boolean")

    def test_stats(self):
        self.make_user("blocked@example.com", is_blocked=True)

        response = self.client.get("/api/admin/stats")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data, {
            "accounts_total": 3,
            "accounts_blocked_total": 1,
            "users_total": 2,
            "users_blocked_total": 1,
            "admins_total": 1,
            "admins_blocked_total": 0,
        })

    def test_audit_logs_newest_first_with_filter(self):
        other_admin = self.make_user("second-admin@example.com", role=User.ROLE_ADMIN)
        self.client.patch(f"/api/admin/users/{self.user.id}/block", {"is_blocked": True})
        self.client_for(other_admin).patch(
            f"/api/admin/users/{self.user.id}/block", {"is_blocked": False}
        )

        everything = self.client.get("/api/admin/audit-logs")
        mine = self.client.get("/api/admin/audit-logs", {"admin_id": self.admin.id})

        self.assertEqual(everything.data["total"], 2)
        self.assertEqual(everything.data["items"][0]["action"], "USER_UNBLOCK")
        self.assertEqual(everything.data["items"][0]["admin"]["email"], "second-admin@example.com")
        self.assertEqual([i["action"] for i in mine.data["items"]], ["USER_BLOCK"])

    def test_audit_logs_reject_bad_admin_id(self):
        response = self.client.get("/api/admin/audit-logs", {"admin_id": "abc"})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["message"], "admin_id must be positive integer")

    def test_demoting_other_admin_leaves_self_protected(self):
        other = self.make_user("second-admin@example.com", role=User.ROLE_ADMIN)

        first = self.client.patch(f"/api/admin/users/{other.id}/role", {"role": "user"})
        second = self.client.patch(f"/api/admin/users/{self.admin.id}/role", {"role": "user"})

        self.assertEqual(first.status_code, 200)
        self.assertEqual(second.status_code, 409)
        self.assertEqual(second.data["user_id"], self.admin.id)
        self.admin.refresh_from_db()
        self.assertEqual(self.admin.role, User.ROLE_ADMIN)


class AdminLockingTest(ApiTestCase):
    """Target and active admins are locked in one id-ordered query."""

    def test_lock_returns_target_and_active_admin_count(self):
        first = self.make_user("first-admin@example.com", role=User.ROLE_ADMIN)
        self.make_user("second-admin@example.com", role=User.ROLE_ADMIN)
        self.make_user("blocked-admin@example.com", role=User.ROLE_ADMIN, is_blocked=True)

        with transaction.atomic():
            target, active_admins = _lock_target_and_admins(self.user.id)
            self.assertEqual(target, self.user)
            self.assertEqual(active_admins, 2)

            target, active_admins = _lock_target_and_admins(first.id)
            self.assertEqual(target, first)
            self.assertEqual(active_admins, 2)

    def test_lock_of_unknown_user_is_not_found(self):
        with transaction.atomic(), self.assertRaises(NotFound):
            _lock_target_and_admins(99999)
