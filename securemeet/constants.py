
# ========== ROLES ==========
ROLE_USER = 'USER'
ROLE_ADMIN = 'ADMIN'
ROLES = (ROLE_USER, ROLE_ADMIN)

# ========== VERIFICATION CODES ==========
CODE_PURPOSES = ('STEP_ONE', 'STEP_TWO', 'STEP_THREE')
VERIFICATION_CODE_BYTES = 3                  # 6 hex characters
VERIFICATION_CODE_TTL_SECONDS = 10 * 60


# ========== TOTP ==========
TOTP_SECRET_LENGTH = 32                      # base32 chars, 160 bits
TOTP_DIGITS = 6
TOTP_INTERVAL = 30
TOTP_VALID_WINDOW = 1                        # +/- one 30s step
TOTP_ISSUER = 'SecureMeet'
BACKUP_CODE_COUNT = 10

# ========== SECURITY QUESTIONS ==========
ANSWER_HASH_TIME_COST = 3
ANSWER_HASH_MEMORY_COST = 65536

# ========== ENCRYPTION ==========
KDF_TIME_COST = 2
KDF_MEMORY_COST = 65536
KDF_PARALLELISM = 1
KEY_BYTES = 32
SALT_BYTES = 16
NONCE_BYTES = 16
TAG_BYTES = 16

# ========== NOTIFICATIONS ==========
MAIL_MAX_ATTEMPTS = 3
MAIL_RETRY_DELAY = 1.0

# ========== SESSIONS ==========
SESSION_TTL_MINUTES = 30
SESSION_COOKIE_NAME = 'session_token'

# ========== ERROR MESSAGES ==========
ERROR_INVALID_CREDENTIALS = 'Invalid credentials.'
ERROR_NOTIFICATION_FAILED = 'Could not send the verification code. Please try again later.'
ERROR_MFA_NOT_CONFIGURED = 'MFA not set up.'
ERROR_INVALID_TOTP = 'Invalid verification code.'
ERROR_CODE_REQUIRED = 'Verification code is required.'
ERROR_UNAUTHORIZED = 'Unauthorized.'
ERROR_FORBIDDEN = 'Insufficient permissions.'
ERROR_USER_NOT_FOUND = 'User not found.'
ERROR_EMAIL_EXISTS = 'User with this email already exists.'
ERROR_MISSING_FIELDS = 'Name, email and password are required.'
ERROR_INVALID_ROLE = 'Invalid role.'
ERROR_INVALID_QUESTIONS = 'Only one security question can be active.'
ERROR_INVALID_REQUEST = 'Invalid request body.'

# ========== SUCCESS MESSAGES ==========
MSG_CODE_SENT = 'Verification code sent.'
MSG_LOGIN_SUCCESS = 'Authentication complete.'
MSG_LOGOUT_SUCCESS = 'Logged out.'
MSG_MFA_SETUP = 'Scan the QR code with your authenticator app, then verify a code.'
MSG_TOTP_VERIFIED = 'Verification successful.'
MSG_EMAIL_SERVICE_OK = 'Email service is working correctly.'
