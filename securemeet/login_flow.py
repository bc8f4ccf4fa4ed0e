"""
Step-by-step login state machine.

A login is a chain of gates. Step ``n`` checks gate ``n - 1``; when it
passes, gate ``n`` is prepared (for e-mail code gates that means issuing a
code and sending it) and claims recording ``authStep = n`` are returned.
Passing the last gate completes authentication.

The default chain is password, then three e-mailed codes::

    ANONYMOUS -> 1 (password) -> 2 (code 1) -> 3 (code 2) -> 4 (code 3, completed)

Every failure surfaces as InvalidCredentials. Which check failed is only
written to the log.
"""

from typing import Any, Dict, List, Optional

from flask import current_app

from securemeet.db_queries import UserQueries
from securemeet.errors import (
    CodeExpired, InvalidCredentials, MFANotConfigured, NotificationDeliveryFailed,
)
from securemeet.helpers.code_helpers import (
    CODE_EXPIRED, code_status, consume_code, issue_code,
)
from securemeet.helpers.mail_helpers import send_verification_email
from securemeet.helpers.password_helpers import verify_password
from securemeet.helpers.totp_helpers import user_has_totp_enabled, verify_user_totp
from securemeet.session_keys import ClaimKeys


def normalize_email(email) -> str:
    return str(email or '').strip().lower()


class LoginContext:
    """Input for one step plus what the gates learned about it"""

    def __init__(self, email: str, password: Optional[str] = None,
                 code: Optional[str] = None, user=None):
        self.email = email
        self.password = password
        self.code = code
        self.user = user
        self.failure_reason: Optional[str] = None


class Gate:
    """One factor in a login policy"""

    name = 'gate'

    def check(self, context: LoginContext) -> bool:
        raise NotImplementedError

    def prepare(self, context: LoginContext) -> None:
        """Called once the previous gate passed and this one is next"""


class PasswordGate(Gate):
    name = 'password'

    def check(self, context):
        if not context.password or not isinstance(context.password, str):
            context.failure_reason = 'missing password'
            return False
        # verify_password checks a dummy hash when user is None
        if not verify_password(context.user, context.password):
            context.failure_reason = 'unknown email or wrong password'
            return False
        return True


class EmailCodeGate(Gate):
    """Code of one purpose, e-mailed when the gate becomes next"""

    name = 'email_code'

    def __init__(self, purpose: str, notification_step: int):
        self.purpose = purpose
        self.notification_step = notification_step

    def check(self, context):
        if context.user is None or not context.code:
            context.failure_reason = 'missing code'
            return False
        user_id = context.user['id']
        if consume_code(user_id, context.code, self.purpose):
            return True
        if code_status(user_id, context.code, self.purpose) == CODE_EXPIRED:
            context.failure_reason = CODE_EXPIRED
        else:
            context.failure_reason = f'no matching {self.purpose} code'
        return False

    def prepare(self, context):
        code = issue_code(context.user['id'], self.purpose)
        send_verification_email(context.user['email'], self.notification_step, code)


class TotpGate(Gate):
    """Authenticator-app code against the user's enabled TOTP secret"""

    name = 'totp'

    def check(self, context):
        if context.user is None or not context.code:
            context.failure_reason = 'missing code'
            return False
        user_id = context.user['id']
        if not user_has_totp_enabled(user_id):
            context.failure_reason = 'TOTP not enabled'
            return False
        try:
            ok = verify_user_totp(user_id, context.code)
        except MFANotConfigured:
            ok = False
        if not ok:
            context.failure_reason = 'invalid TOTP code'
        return ok


def build_claims(user, auth_step: int, completed: bool) -> Dict[str, Any]:
    claims = {
        ClaimKeys.ID: user['id'],
        ClaimKeys.EMAIL: user['email'],
        ClaimKeys.NAME: user['name'],
        ClaimKeys.AUTH_STEP: str(auth_step),
        ClaimKeys.COMPLETED_AUTH: completed,
    }
    if completed:
        claims[ClaimKeys.ROLE] = user['role']
    return claims


class LoginPolicy:
    """Chains gates into an ordered login sequence"""

    def __init__(self, gates: List[Gate]):
        if not gates:
            raise ValueError('A login policy needs at least one gate')
        self.gates = gates

    @property
    def final_step(self) -> int:
        return len(self.gates)

    def advance(self, step, email, password=None, code=None) -> Dict[str, Any]:
        """
        Run one login step

        Args:
            step: which step (1..final_step) the input is for
            email: account email
            password: required by password gates
            code: required by code gates

        Returns:
            Session claims for the step reached

        Raises:
            InvalidCredentials: any failed or out-of-order check (CodeExpired
                for an expired code, which is a subclass)
            NotificationDeliveryFailed: the step passed but the next code could
                not be delivered; the exception carries the claims
        """
        try:
            step = int(step)
        except (TypeError, ValueError):
            raise InvalidCredentials('Invalid credentials')
        if step < 1 or step > self.final_step:
            current_app.logger.warning('Login step %s out of range', step)
            raise InvalidCredentials('Invalid credentials')

        email = normalize_email(email)
        user = UserQueries.get_by_email(email) if email else None
        context = LoginContext(email, password=password, code=code, user=user)
        gate = self.gates[step - 1]

        if not gate.check(context) or user is None:
            reason = context.failure_reason or 'unknown user'
            current_app.logger.warning('Login step %d (%s) failed: %s', step, gate.name, reason)
            if reason == CODE_EXPIRED:
                raise CodeExpired('Invalid credentials')
            raise InvalidCredentials('Invalid credentials')

        completed = step == self.final_step
        claims = build_claims(user, step, completed)
        if not completed:
            try:
                self.gates[step].prepare(context)
            except NotificationDeliveryFailed as e:
                e.claims = claims
                raise
        current_app.logger.info('User %s passed login step %d%s', user['id'], step,
                                ' (authentication complete)' if completed else '')
        return claims

    def resend(self, claims: Dict[str, Any]) -> None:
        """Prepare the next gate again for a partially authenticated session"""
        if not claims or claims.get(ClaimKeys.COMPLETED_AUTH):
            raise InvalidCredentials('Invalid credentials')
        try:
            step = int(claims.get(ClaimKeys.AUTH_STEP))
        except (TypeError, ValueError):
            raise InvalidCredentials('Invalid credentials')
        if step < 1 or step >= self.final_step:
            raise InvalidCredentials('Invalid credentials')

        user = UserQueries.get_by_id(claims.get(ClaimKeys.ID))
        if user is None or user['email'] != claims.get(ClaimKeys.EMAIL):
            raise InvalidCredentials('Invalid credentials')
        self.gates[step].prepare(LoginContext(user['email'], user=user))

    def next_step(self, claims: Optional[Dict[str, Any]]) -> int:
        """Step the holder of these (server-signed) claims may attempt next"""
        if not claims or claims.get(ClaimKeys.COMPLETED_AUTH):
            return 1
        try:
            step = int(claims.get(ClaimKeys.AUTH_STEP))
        except (TypeError, ValueError):
            return 1
        if step < 1 or step >= self.final_step:
            return 1
        return step + 1


def default_login_policy() -> LoginPolicy:
    return LoginPolicy([
        PasswordGate(),
        EmailCodeGate('STEP_ONE', 1),
        EmailCodeGate('STEP_TWO', 2),
        EmailCodeGate('STEP_THREE', 3),
    ])
