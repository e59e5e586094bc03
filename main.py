import sys

from loguru import logger

from api.auth import issue_token
from core.rbac import Role, parse_role
from core.settings import Settings

USAGE = "Usage: python main.py <user_id> <role> [school_id]"


def main():
    if len(sys.argv) < 3:
        logger.error(USAGE)
        logger.error(f"Roles: {', '.join(r.value for r in Role)}")
        sys.exit(1)

    user_id = sys.argv[1]
    role = parse_role(sys.argv[2].upper())
    tenant_id = sys.argv[3] if len(sys.argv) > 3 else None

    if role is None:
        logger.error(f"Unknown role {sys.argv[2]!r}")
        sys.exit(1)
    if role is not Role.GLOBAL_ADMIN and not tenant_id:
        logger.error(f"Role {role.value} needs a school id")
        sys.exit(1)

    settings = Settings.from_env()
    try:
        token = issue_token(user_id, role, tenant_id, settings)
    except RuntimeError as e:
        logger.error(str(e))
        sys.exit(1)

    logger.success(
        f"Issued token for {user_id} as {role.value}"
        f" (expires in {settings.token_ttl_seconds}s)"
    )
    print(token)


if __name__ == "__main__":
    main()
