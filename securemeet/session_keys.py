
# Claim names carried in the signed session token.

class ClaimKeys:
    """Constants for all claims issued by the login flow"""

    # Identity
    ID = 'id'
    EMAIL = 'email'
    NAME = 'name'
    ROLE = 'role'

    # Login progress
    AUTH_STEP = 'authStep'
    COMPLETED_AUTH = 'completedAuth'

    # Token bookkeeping
    ISSUED_AT = 'iat'
    EXPIRES = 'exp'
