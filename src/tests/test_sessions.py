"""Session liveness and token decoding."""

from __future__ import annotations

from datetime import timedelta
from io import StringIO

from django.core.management import call_command
from django.test import TestCase, override_settings
from django.utils import timezone

from authentication.models import UserSession
from authentication.services import SessionService, TokenService
from core.exceptions import AuthenticationFailure, ErrorCode
from tests.utils import create_user


class SessionServiceTests(TestCase):
    @classmethod
    def setUpTestData(cls):
        cls.user = create_user("user@test.com", "Pass12345")
        cls.other = create_user("other@test.com", "Pass12345")

    def assertAuthCode(self, code, func, *args):
        with self.assertRaises(AuthenticationFailure) as ctx:
            func(*args)
        self.assertEqual(ctx.exception.get_codes(), code)

    def test_validate_live_session_touches_activity(self):
        session = SessionService.create(self.user)
        UserSession.objects.filter(pk=session.pk).update(last_activity_at=timezone.now() - timedelta(hours=1))

        validated = SessionService.validate(self.user.pk, session.session_token)

        session.refresh_from_db()
        self.assertEqual(validated.pk, session.pk)
        self.assertGreater(session.last_activity_at, timezone.now() - timedelta(minutes=1))

    def test_unknown_session_is_invalid(self):
        self.assertAuthCode(ErrorCode.INVALID_TOKEN, SessionService.validate, self.user.pk, "nope")

    def test_session_of_another_user_is_invalid(self):
        session = SessionService.create(self.other)

        self.assertAuthCode(ErrorCode.INVALID_TOKEN, SessionService.validate, self.user.pk, session.session_token)

    def test_revoked_session_is_expired(self):
        session = SessionService.create(self.user)

        self.assertEqual(SessionService.revoke(self.user.pk, session.session_token), 1)
        self.assertAuthCode(ErrorCode.SESSION_EXPIRED, SessionService.validate, self.user.pk, session.session_token)
        self.assertEqual(SessionService.revoke(self.user.pk, session.session_token), 0)

    def test_expired_session_is_expired(self):
        session = SessionService.create(self.user)
        UserSession.objects.filter(pk=session.pk).update(expires_at=timezone.now() - timedelta(seconds=1))

        self.assertAuthCode(ErrorCode.SESSION_EXPIRED, SessionService.validate, self.user.pk, session.session_token)

    def test_revoke_all_only_touches_one_user(self):
        SessionService.create(self.user)
        SessionService.create(self.user)
        kept = SessionService.create(self.other)

        self.assertEqual(SessionService.revoke_all(self.user), 2)
        self.assertFalse(UserSession.objects.filter(user=self.user, is_active=True).exists())
        SessionService.validate(self.other.pk, kept.session_token)

    def test_clean_expired(self):
        live = SessionService.create(self.user)
        stale = SessionService.create(self.user)
        UserSession.objects.filter(pk=stale.pk).update(expires_at=timezone.now() - timedelta(hours=1))

        self.assertEqual(SessionService.clean_expired(), 1)
        stale.refresh_from_db()
        live.refresh_from_db()
        self.assertFalse(stale.is_active)
        self.assertTrue(live.is_active)

    def test_clean_sessions_command(self):
        stale = SessionService.create(self.user)
        UserSession.objects.filter(pk=stale.pk).update(expires_at=timezone.now() - timedelta(hours=1))
        out = StringIO()

        call_command("clean_sessions", stdout=out)

        self.assertIn("Deactivated 1 expired session(s).", out.getvalue())


class TokenServiceTests(TestCase):
    @classmethod
    def setUpTestData(cls):
        cls.user = create_user("user@test.com", "Pass12345", user_level="citizen")

    def setUp(self):
        self.session = SessionService.create(self.user)

    def test_tokens_carry_subject_and_session(self):
        access, refresh = TokenService.generate_tokens(self.user, self.session)

        payload = TokenService.decode_token(access, expected_type="access")
        self.assertEqual(payload["sub"], str(self.user.pk))
        self.assertEqual(payload["sid"], self.session.session_token)
        self.assertEqual(payload["level"], "citizen")
        self.assertEqual(TokenService.decode_token(refresh, expected_type="refresh")["type"], "refresh")

    def test_wrong_type_is_invalid(self):
        _, refresh = TokenService.generate_tokens(self.user, self.session)

        with self.assertRaises(AuthenticationFailure) as ctx:
            TokenService.decode_token(refresh, expected_type="access")
        self.assertEqual(ctx.exception.get_codes(), ErrorCode.INVALID_TOKEN)

    def test_garbage_is_invalid(self):
        with self.assertRaises(AuthenticationFailure) as ctx:
            TokenService.decode_token("not-a-jwt")
        self.assertEqual(ctx.exception.get_codes(), ErrorCode.INVALID_TOKEN)

    @override_settings(ACCESS_TOKEN_TTL_MINUTES=-1)
    def test_expired_token(self):
        access, _ = TokenService.generate_tokens(self.user, self.session)

        with self.assertRaises(AuthenticationFailure) as ctx:
            TokenService.decode_token(access, expected_type="access")
        self.assertEqual(ctx.exception.get_codes(), ErrorCode.TOKEN_EXPIRED)

    @override_settings(JWT_SECRET="another-secret-entirely-for-this-test")
    def test_foreign_signature_is_invalid(self):
        with override_settings(JWT_SECRET="the-signing-secret-for-this-token-only"):
            access, _ = TokenService.generate_tokens(self.user, self.session)

        with self.assertRaises(AuthenticationFailure) as ctx:
            TokenService.decode_token(access)
        self.assertEqual(ctx.exception.get_codes(), ErrorCode.INVALID_TOKEN)
