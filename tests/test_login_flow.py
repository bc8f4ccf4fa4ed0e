"""
Unit tests for the login state machine.

Tests:
- Full password + three code walk-through
- Failures never advance and never say which check failed
- Expired, replayed and out-of-order codes
- Notification failures and resends
- Custom policies with a TOTP gate
"""

import pyotp
import pytest

from securemeet.db import get_db
from securemeet.errors import CodeExpired, InvalidCredentials, NotificationDeliveryFailed
from securemeet.helpers.totp_helpers import enable_totp, provision_totp
from securemeet.login_flow import (
    LoginPolicy, PasswordGate, TotpGate, build_claims, default_login_policy,
)
from securemeet.session_keys import ClaimKeys


@pytest.fixture
def policy():
    return default_login_policy()


def _login_to(policy, notifier, user, step):
    """Advance a fresh login until claims for `step` are held"""
    claims = policy.advance(1, user['email'], password=user['password'])
    for n in range(2, step + 1):
        claims = policy.advance(n, user['email'], code=notifier.last_code(n - 1))
    return claims


class TestHappyPath:

    def test_full_login(self, app_ctx, policy, notifier, user):
        claims = policy.advance(1, ' A@X.com ', password='p')
        assert claims[ClaimKeys.AUTH_STEP] == '1'
        assert claims[ClaimKeys.COMPLETED_AUTH] is False
        assert ClaimKeys.ROLE not in claims
        assert notifier.sent[-1]['to'] == 'a@x.com'
        assert notifier.sent[-1]['step'] == 1

        for step in (2, 3):
            claims = policy.advance(step, 'a@x.com', code=notifier.last_code(step - 1))
            assert claims[ClaimKeys.AUTH_STEP] == str(step)
            assert claims[ClaimKeys.COMPLETED_AUTH] is False
            assert notifier.sent[-1]['step'] == step

        claims = policy.advance(4, 'a@x.com', code=notifier.last_code(3))
        assert claims[ClaimKeys.AUTH_STEP] == '4'
        assert claims[ClaimKeys.COMPLETED_AUTH] is True
        assert claims[ClaimKeys.ROLE] == 'USER'
        assert claims[ClaimKeys.ID] == user['id']
        assert len(notifier.sent) == 3

    def test_final_step(self, policy):
        assert policy.final_step == 4

    def test_password_restarts_login(self, app_ctx, policy, notifier, user):
        _login_to(policy, notifier, user, 3)
        claims = policy.advance(1, user['email'], password='p')
        assert claims[ClaimKeys.AUTH_STEP] == '1'


class TestFailures:

    def test_wrong_password(self, app_ctx, policy, notifier, user):
        with pytest.raises(InvalidCredentials):
            policy.advance(1, user['email'], password='wrong')
        assert notifier.sent == []

    def test_unknown_email_looks_the_same(self, app_ctx, policy, notifier, user):
        with pytest.raises(InvalidCredentials) as unknown:
            policy.advance(1, 'nobody@x.com', password='p')
        with pytest.raises(InvalidCredentials) as wrong:
            policy.advance(1, user['email'], password='nope')
        assert str(unknown.value) == str(wrong.value)
        assert notifier.sent == []

    def test_missing_password(self, app_ctx, policy, user):
        with pytest.raises(InvalidCredentials):
            policy.advance(1, user['email'])

    @pytest.mark.parametrize('step', [0, 5, -1, 'x', None])
    def test_step_out_of_range(self, app_ctx, policy, user, step):
        with pytest.raises(InvalidCredentials):
            policy.advance(step, user['email'], password='p')

    def test_code_never_issued(self, app_ctx, policy, user):
        with pytest.raises(InvalidCredentials):
            policy.advance(2, user['email'], code='abcdef')

    def test_code_replay_fails(self, app_ctx, policy, notifier, user):
        _login_to(policy, notifier, user, 2)
        with pytest.raises(InvalidCredentials):
            policy.advance(2, user['email'], code=notifier.last_code(1))

    def test_code_for_wrong_step(self, app_ctx, policy, notifier, user):
        policy.advance(1, user['email'], password='p')
        c1 = notifier.last_code(1)
        with pytest.raises(InvalidCredentials) as exc:
            policy.advance(3, user['email'], code=c1)
        assert not isinstance(exc.value, CodeExpired)
        # not consumed by the failed attempt
        assert policy.advance(2, user['email'], code=c1)[ClaimKeys.AUTH_STEP] == '2'

    def test_code_of_other_user(self, app_ctx, policy, notifier, user, admin):
        policy.advance(1, user['email'], password='p')
        with pytest.raises(InvalidCredentials):
            policy.advance(2, admin['email'], code=notifier.last_code(1))

    def test_expired_code(self, app_ctx, policy, notifier, user):
        app_ctx.config['VERIFICATION_CODE_TTL_SECONDS'] = -1
        policy.advance(1, user['email'], password='p')
        with pytest.raises(CodeExpired) as exc:
            policy.advance(2, user['email'], code=notifier.last_code(1))
        assert isinstance(exc.value, InvalidCredentials)


class TestNotificationFailure:

    def test_persistent_failure_keeps_code_and_claims(self, app_ctx, policy, notifier, user):
        notifier.fail_next = 3
        with pytest.raises(NotificationDeliveryFailed) as exc:
            policy.advance(1, user['email'], password='p')
        assert exc.value.claims[ClaimKeys.AUTH_STEP] == '1'
        assert exc.value.attempts == 3
        assert get_db().execute(
            "SELECT 1 FROM verification_codes WHERE user_id = ? AND purpose = 'STEP_ONE'", (user['id'],)
        ).fetchone() is not None

        policy.resend(exc.value.claims)
        claims = policy.advance(2, user['email'], code=notifier.last_code(1))
        assert claims[ClaimKeys.AUTH_STEP] == '2'

    def test_transient_failure_is_retried(self, app_ctx, policy, notifier, user):
        notifier.fail_next = 2
        claims = policy.advance(1, user['email'], password='p')
        assert claims[ClaimKeys.AUTH_STEP] == '1'
        assert len(notifier.sent) == 1


class TestResendAndNextStep:

    def test_resend_replaces_code(self, app_ctx, policy, notifier, user):
        claims = policy.advance(1, user['email'], password='p')
        first = notifier.last_code(1)
        policy.resend(claims)
        second = notifier.last_code(1)
        assert len(notifier.sent) == 2
        if first != second:
            with pytest.raises(InvalidCredentials):
                policy.advance(2, user['email'], code=first)
        assert policy.advance(2, user['email'], code=second)[ClaimKeys.AUTH_STEP] == '2'

    def test_resend_after_completion_rejected(self, app_ctx, policy, notifier, user):
        claims = _login_to(policy, notifier, user, 4)
        with pytest.raises(InvalidCredentials):
            policy.resend(claims)

    def test_resend_with_mismatched_email_rejected(self, app_ctx, policy, notifier, user):
        claims = policy.advance(1, user['email'], password='p')
        claims[ClaimKeys.EMAIL] = 'admin@x.com'
        with pytest.raises(InvalidCredentials):
            policy.resend(claims)

    @pytest.mark.parametrize('claims, expected', [
        (None, 1),
        ({}, 1),
        ({ClaimKeys.AUTH_STEP: '1', ClaimKeys.COMPLETED_AUTH: False}, 2),
        ({ClaimKeys.AUTH_STEP: '3', ClaimKeys.COMPLETED_AUTH: False}, 4),
        ({ClaimKeys.AUTH_STEP: '4', ClaimKeys.COMPLETED_AUTH: True}, 1),
        ({ClaimKeys.AUTH_STEP: 'two', ClaimKeys.COMPLETED_AUTH: False}, 1),
        ({ClaimKeys.AUTH_STEP: '9', ClaimKeys.COMPLETED_AUTH: False}, 1),
    ])
    def test_next_step(self, policy, claims, expected):
        assert policy.next_step(claims) == expected


class TestCustomPolicy:

    def test_password_then_totp(self, app_ctx, notifier, user):
        policy = LoginPolicy([PasswordGate(), TotpGate()])
        secret, _, _ = provision_totp(user['id'], user['email'])
        enable_totp(user['id'])

        claims = policy.advance(1, user['email'], password='p')
        assert claims[ClaimKeys.COMPLETED_AUTH] is False
        assert notifier.sent == []

        claims = policy.advance(2, user['email'], code=pyotp.TOTP(secret).now())
        assert claims[ClaimKeys.COMPLETED_AUTH] is True

    def test_totp_gate_needs_enabled_totp(self, app_ctx, user):
        policy = LoginPolicy([PasswordGate(), TotpGate()])
        secret, _, _ = provision_totp(user['id'], user['email'])
        policy.advance(1, user['email'], password='p')
        with pytest.raises(InvalidCredentials):
            policy.advance(2, user['email'], code=pyotp.TOTP(secret).now())

    def test_empty_policy_rejected(self):
        with pytest.raises(ValueError):
            LoginPolicy([])

    def test_build_claims_role_only_when_completed(self):
        row = {'id': 7, 'email': 'a@x.com', 'name': 'Alice', 'role': 'ADMIN'}
        assert ClaimKeys.ROLE not in build_claims(row, 2, False)
        assert build_claims(row, 4, True)[ClaimKeys.ROLE] == 'ADMIN'
