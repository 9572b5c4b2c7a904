# Reserved shared-state keys.
# Any stage may read or write these; every other slot belongs to the
# stage whose tag names it.

# User object being assembled (registration) or located (reset)
USER_FIELD = "user"

# Identifier of the located or created user record
USER_ID_FIELD = "userId"

# Email address confirmed by the email validation stage
EMAIL_FIELD = "mail"

RESERVED_KEYS = frozenset({USER_FIELD, USER_ID_FIELD, EMAIL_FIELD})
