# -*- coding: utf-8 -*-

from __future__ import annotations

import shutil
import tempfile
import unittest
from pathlib import Path

from glucoscan.accounts.credentials import PlainCredentials
from glucoscan.accounts.models import UserProfile
from glucoscan.accounts.storage import AccountDirectory
from glucoscan.errors import (
    AccountNotFound,
    DuplicateAccount,
    EmptyCredential,
    InvalidCredential,
    NotSignedIn,
    PasswordMismatch,
    ResetNotStarted,
    UnknownCondition,
)
from glucoscan.history import ledger
from glucoscan.kv_store import GUEST_HISTORY_KEY, SESSION_KEY, KeyValueStore, plan_cache_key
from glucoscan.session.manager import SessionManager
from glucoscan.session.models import SessionState

from tests.fakes import FakeInference, make_impact, make_plan


class SessionTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = Path(tempfile.mkdtemp(prefix="glucoscan-test-"))
        self.store = KeyValueStore(self._tmp / "kv.db")
        self.inference = FakeInference()
        self.manager = self.new_manager()

    def tearDown(self) -> None:
        shutil.rmtree(self._tmp, ignore_errors=True)

    def new_manager(self, **kwargs) -> SessionManager:
        kwargs.setdefault("honor_stay_signed_in", False)
        kwargs.setdefault("history_limit", 50)
        return SessionManager(
            self.store,
            directory=AccountDirectory(self.store, PlainCredentials()),
            inference=self.inference,
            **kwargs,
        )


class TestAuthentication(SessionTestCase):
    def test_signup_record_update_logout_login_scenario(self) -> None:
        m = self.manager
        m.signup("user@test.com", "pw123", "pw123")
        record = m.record_scan(make_impact("Bibimbap"), None)
        m.update_profile({"hba1c_percent": 7.2})
        m.logout()

        session = m.login("USER@TEST.COM", "pw123")
        self.assertEqual(m.state, SessionState.active_account)
        self.assertEqual(session.profile.hba1c_percent, 7.2)
        self.assertEqual(m.history, [record])

    def test_signup_password_mismatch_never_touches_directory(self) -> None:
        with self.assertRaises(PasswordMismatch):
            self.manager.signup("a@x.com", "pw1", "pw2")
        self.assertEqual(self.manager.directory.load(), {})
        self.assertEqual(self.manager.state, SessionState.logged_out)

    def test_signup_existing_account(self) -> None:
        self.manager.signup("a@x.com", "pw", "pw")
        self.manager.logout()
        with self.assertRaises(DuplicateAccount):
            self.manager.signup("A@x.com", "pw", "pw")
        self.assertEqual(self.manager.state, SessionState.logged_out)

    def test_failed_login_stays_logged_out(self) -> None:
        self.manager.directory.register("a@x.com", "pw")
        with self.assertRaises(InvalidCredential):
            self.manager.login("a@x.com", "wrong")
        with self.assertRaises(InvalidCredential):
            self.manager.login("nobody@x.com", "pw")
        self.assertEqual(self.manager.state, SessionState.logged_out)
        self.assertIsNone(self.manager.session)
        self.assertIsNone(self.store.get(SESSION_KEY))

    def test_login_persists_snapshot_even_without_stay_signed_in(self) -> None:
        self.manager.directory.register("a@x.com", "pw")
        self.manager.login("a@x.com", "pw", stay_signed_in=False)
        self.assertEqual(self.store.get(SESSION_KEY)["email"], "a@x.com")

    def test_stay_signed_in_honored_when_enabled(self) -> None:
        manager = self.new_manager(honor_stay_signed_in=True)
        manager.directory.register("a@x.com", "pw")
        manager.login("a@x.com", "pw", stay_signed_in=False)
        manager.update_profile({"fasting_glucose_mg_dl": 95})
        manager.record_scan(make_impact(), None)
        self.assertIsNone(self.store.get(SESSION_KEY))
        # The directory is still kept current.
        self.assertEqual(manager.directory.get("a@x.com").profile.fasting_glucose_mg_dl, 95)

    def test_login_loads_cached_plan_and_logout_clears_memory(self) -> None:
        self.manager.directory.register("a@x.com", "pw")
        self.manager.plan_cache.save("a@x.com", make_plan("Oatmeal"))
        self.manager.login("a@x.com", "pw")
        self.assertEqual([p.name for p in self.manager.plan], ["Oatmeal"])

        self.manager.current_result = make_impact()
        self.manager.logout()
        self.assertEqual(self.manager.state, SessionState.logged_out)
        self.assertEqual(self.manager.plan, [])
        self.assertIsNone(self.manager.current_result)
        self.assertEqual(self.manager.history, [])
        self.assertIsNone(self.store.get(SESSION_KEY))
        self.assertTrue(self.store.has(plan_cache_key("a@x.com")))

    def test_relogin_reflects_directory_not_stale_memory(self) -> None:
        self.manager.signup("a@x.com", "pw", "pw")
        self.manager.logout()
        other = self.new_manager()
        other.login("a@x.com", "pw")
        other.update_profile({"post_meal_target_mg_dl": 140})
        other.record_scan(make_impact("Toast"), None)

        self.manager.login("a@x.com", "pw")
        self.assertEqual(self.manager.profile.post_meal_target_mg_dl, 140)
        self.assertEqual([r.data.name for r in self.manager.history], ["Toast"])

    def test_mutations_require_a_session(self) -> None:
        with self.assertRaises(NotSignedIn):
            self.manager.update_profile({"hba1c_percent": 7})
        with self.assertRaises(NotSignedIn):
            self.manager.record_scan(make_impact(), None)


class TestProfile(SessionTestCase):
    def test_sequential_updates_merge_field_by_field(self) -> None:
        self.manager.signup("a@x.com", "pw", "pw")
        self.manager.update_profile({"hba1c_percent": 7.1, "conditions": ["obesity"]})
        self.manager.update_profile({"hba1c_percent": 8.0, "fasting_glucose_mg_dl": 130})

        expected = UserProfile(
            hba1c_percent=8.0,
            fasting_glucose_mg_dl=130,
            post_meal_target_mg_dl=160,
            conditions=["obesity"],
        )
        self.assertEqual(self.manager.profile, expected)
        self.assertEqual(self.manager.directory.get("a@x.com").profile, expected)
        self.assertEqual(self.store.get(SESSION_KEY)["profile"], expected.model_dump(mode="json"))

    def test_out_of_range_update_is_rejected(self) -> None:
        self.manager.signup("a@x.com", "pw", "pw")
        with self.assertRaises(ValueError):
            self.manager.update_profile({"hba1c_percent": 20})
        self.assertEqual(self.manager.profile, UserProfile())

    def test_toggle_condition_keeps_order(self) -> None:
        self.manager.signup("a@x.com", "pw", "pw")
        self.manager.toggle_condition("hypertension")
        self.manager.toggle_condition("diabetes_t2")
        self.manager.toggle_condition("pcos")
        self.manager.toggle_condition("diabetes_t2")
        self.assertEqual(self.manager.profile.conditions, ["hypertension", "pcos"])

    def test_unknown_condition_ids_are_rejected(self) -> None:
        self.manager.signup("a@x.com", "pw", "pw")
        self.manager.toggle_condition("obesity")
        with self.assertRaises(UnknownCondition):
            self.manager.toggle_condition("vampirism")
        with self.assertRaises(ValueError):
            self.manager.update_profile({"conditions": ["obesity", "vampirism"]})
        self.assertEqual(self.manager.profile.conditions, ["obesity"])
        self.assertEqual(self.manager.directory.get("a@x.com").profile.conditions, ["obesity"])

    def test_stored_unknown_conditions_are_dropped(self) -> None:
        profile = UserProfile.model_validate({"conditions": ["kidney", "retired_id", "kidney"]})
        self.assertEqual(profile.conditions, ["kidney"])

    def test_guest_profile_is_memory_only(self) -> None:
        self.manager.guest_login()
        self.manager.update_profile({"hba1c_percent": 9})
        self.assertEqual(self.manager.profile.hba1c_percent, 9)
        self.assertIsNone(self.store.get(SESSION_KEY))
        self.manager.logout()
        self.manager.guest_login()
        self.assertEqual(self.manager.profile, UserProfile())


class TestHistory(SessionTestCase):
    def test_history_is_capped_for_accounts_and_guests(self) -> None:
        manager = self.new_manager(history_limit=5)
        manager.signup("a@x.com", "pw", "pw")
        for i in range(8):
            manager.record_scan(make_impact(f"meal {i}"), None)
        self.assertEqual(len(manager.history), 5)
        self.assertEqual(manager.history[0].data.name, "meal 7")
        self.assertEqual(len(manager.directory.get("a@x.com").history), 5)

        manager.logout()
        manager.guest_login()
        for i in range(8):
            manager.record_scan(make_impact(f"snack {i}"), None)
        self.assertEqual(len(self.store.get(GUEST_HISTORY_KEY)), 5)
        self.assertEqual(manager.history[0].data.name, "snack 7")

    def test_guest_history_survives_logout_and_stays_out_of_accounts(self) -> None:
        self.manager.guest_login()
        guest_record = self.manager.record_scan(make_impact("Guest donut"), None)
        self.manager.logout()

        self.manager.signup("a@x.com", "pw", "pw")
        self.assertEqual(self.manager.history, [])
        self.manager.record_scan(make_impact("Account salad"), None)
        self.manager.logout()

        self.manager.guest_login()
        self.assertEqual(self.manager.history, [guest_record])
        account = self.manager.directory.get("a@x.com")
        self.assertEqual([r.data.name for r in account.history], ["Account salad"])

    def test_signup_as_guest_name_cannot_reach_guest_history(self) -> None:
        self.manager.guest_login()
        guest_record = self.manager.record_scan(make_impact("Guest donut"), None)
        self.manager.logout()

        with self.assertRaises(InvalidCredential):
            self.manager.signup("Guest", "pw", "pw")
        self.assertEqual(self.manager.state, SessionState.logged_out)
        self.assertEqual(ledger.load_history(self.store.get(GUEST_HISTORY_KEY)), [guest_record])
        self.assertEqual(self.manager.directory.load(), {})

    def test_history_search(self) -> None:
        self.manager.guest_login()
        self.manager.record_scan(make_impact("Sushi"), None)
        self.manager.record_scan(make_impact("Pizza"), None)
        self.assertEqual([r.data.name for r in self.manager.history_matching("sus")], ["Sushi"])


class TestRestore(SessionTestCase):
    def test_no_snapshot_preloads_guest_history(self) -> None:
        record = ledger.new_scan_record(make_impact("Croissant"), None)
        self.store.set(GUEST_HISTORY_KEY, ledger.dump_history([record]))
        state = self.manager.restore()
        self.assertEqual(state, SessionState.logged_out)
        self.assertEqual(self.manager.history, [record])

    def test_restores_registered_session_with_plan(self) -> None:
        self.manager.signup("a@x.com", "pw", "pw")
        self.manager.record_scan(make_impact("Burger"), None)
        self.manager.plan_cache.save("a@x.com", make_plan("Lentil soup"))

        fresh = self.new_manager()
        self.assertEqual(fresh.restore(), SessionState.active_account)
        self.assertEqual(fresh.session.email_key, "a@x.com")
        self.assertEqual([r.data.name for r in fresh.history], ["Burger"])
        self.assertEqual([p.name for p in fresh.plan], ["Lentil soup"])

    def test_directory_wins_over_snapshot(self) -> None:
        self.manager.signup("a@x.com", "pw", "pw")
        self.manager.record_scan(make_impact("Directory meal"), None)
        self.manager.update_profile({"hba1c_percent": 7.5})
        snap = self.store.get(SESSION_KEY)
        snap["profile"]["hba1c_percent"] = 5.0
        snap["history"] = ledger.dump_history([ledger.new_scan_record(make_impact("Stale"), None)])
        self.store.set(SESSION_KEY, snap)

        fresh = self.new_manager()
        fresh.restore()
        self.assertEqual(fresh.profile.hba1c_percent, 7.5)
        self.assertEqual([r.data.name for r in fresh.history], ["Directory meal"])
        # The snapshot is rewritten from the reconciled session.
        self.assertEqual(self.store.get(SESSION_KEY)["profile"]["hba1c_percent"], 7.5)

    def test_snapshot_fills_gaps_in_directory(self) -> None:
        self.store.set(
            "accounts-directory",
            {"a@x.com": {"credential": "pw", "profile": None, "history": []}},
        )
        kept = ledger.new_scan_record(make_impact("From snapshot"), None)
        self.store.set(
            SESSION_KEY,
            {
                "email": "a@x.com",
                "profile": UserProfile(hba1c_percent=6.9).model_dump(mode="json"),
                "history": ledger.dump_history([kept]),
            },
        )
        self.manager.restore()
        self.assertEqual(self.manager.profile.hba1c_percent, 6.9)
        self.assertEqual(self.manager.history, [kept])

    def test_snapshot_without_directory_entry_signs_out(self) -> None:
        self.store.set(SESSION_KEY, {"email": "gone@x.com", "profile": {}, "history": []})
        state = self.manager.restore()
        self.assertEqual(state, SessionState.logged_out)
        self.assertIsNone(self.store.get(SESSION_KEY))

    def test_corrupt_snapshot_signs_out(self) -> None:
        self.store.set_raw(SESSION_KEY, '{"email": ')
        self.assertEqual(self.manager.restore(), SessionState.logged_out)
        self.assertFalse(self.store.has(SESSION_KEY))

        self.store.set(SESSION_KEY, ["not", "an", "object"])
        self.assertEqual(self.manager.restore(), SessionState.logged_out)
        self.assertFalse(self.store.has(SESSION_KEY))

    def test_guest_snapshot_restores_guest(self) -> None:
        record = ledger.new_scan_record(make_impact("Guest soup"), None)
        self.store.set(GUEST_HISTORY_KEY, ledger.dump_history([record]))
        self.store.set(SESSION_KEY, {"email": "guest", "profile": {}, "history": []})
        self.assertEqual(self.manager.restore(), SessionState.active_guest)
        self.assertEqual(self.manager.history, [record])


class TestPasswordReset(SessionTestCase):
    def test_unknown_email_blocks_phase_two(self) -> None:
        with self.assertRaises(AccountNotFound):
            self.manager.begin_password_reset("nobody@x.com")
        self.assertEqual(self.manager.password_reset.phase, 1)
        with self.assertRaises(ResetNotStarted):
            self.manager.complete_password_reset("new-pw")

    def test_two_phase_reset(self) -> None:
        self.manager.directory.register("a@x.com", "old")
        self.manager.begin_password_reset(" A@X.com ")
        self.assertEqual(self.manager.password_reset.phase, 2)
        with self.assertRaises(EmptyCredential):
            self.manager.complete_password_reset("")
        self.manager.complete_password_reset("new")
        self.assertEqual(self.manager.password_reset.phase, 1)

        self.manager.login("a@x.com", "new")
        self.assertEqual(self.manager.state, SessionState.active_account)

    def test_reset_does_not_end_an_active_session(self) -> None:
        self.manager.signup("a@x.com", "old", "old")
        other = self.new_manager()
        other.begin_password_reset("a@x.com")
        other.complete_password_reset("new")
        self.assertEqual(self.manager.state, SessionState.active_account)
        self.manager.record_scan(make_impact(), None)
        self.assertEqual(self.manager.directory.get("a@x.com").credential, "new")

    def test_custom_verifier_gates_phase_two(self) -> None:
        class PendingVerifier:
            def begin(self, email_key: str) -> None:
                self.email_key = email_key

            def is_verified(self, email_key: str) -> bool:
                return False

        manager = self.new_manager(verifier=PendingVerifier())
        manager.begin_password_reset("anyone@x.com")
        with self.assertRaises(ResetNotStarted):
            manager.complete_password_reset("new")


if __name__ == "__main__":
    unittest.main()
