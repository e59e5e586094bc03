from prometheus_client import Counter

AUTH_SUCCESS_COUNTER = Counter(
    'school_auth_resolved_total',
    'Requests whose credential resolved to a scoped identity',
    ['role'],
)

AUTH_DENIAL_COUNTER = Counter(
    'school_auth_denials_total',
    'Requests terminated by an authorization decision',
    ['reason'],
)

LOGIN_COUNTER = Counter(
    'school_logins_total',
    'Login attempts by outcome',
    ['outcome'],
)
