#!/usr/bin/env python3
# scripts/check_secrets.py
"""Pre-commit hook rejecting weak JWT_SECRET values in .env files."""
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from core.security import validate_credential_strength  # noqa: E402

CHECKED_KEYS = ("JWT_SECRET",)


def check_file(filepath: Path) -> tuple[bool, list[str]]:
    """Check the signing secrets assigned in a .env file."""
    issues = []

    try:
        content = filepath.read_text()
    except OSError as e:
        return False, [f"Error reading file: {e}"]

    for line_num, line in enumerate(content.splitlines(), 1):
        stripped = line.strip()
        if not stripped or stripped.startswith("#") or "=" not in stripped:
            continue

        key, value = stripped.split("=", 1)
        key = key.strip().removeprefix("export ").strip()
        if key not in CHECKED_KEYS:
            continue

        value = value.strip().strip("'\"")
        ok, problems = validate_credential_strength(value, min_length=32)
        if not ok:
            issues.extend(f"Line {line_num}: {key}: {problem}" for problem in problems)

    return len(issues) == 0, issues


def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    if not argv:
        print("Usage: check_secrets.py <file>...")
        return 0

    all_passed = True

    for filepath in argv:
        path = Path(filepath)

        if not path.name.startswith(".env") or "example" in path.name:
            continue

        passed, issues = check_file(path)
        if not passed:
            all_passed = False
            print(f"\nSECURITY: weak token secret in {filepath}")
            for issue in issues:
                print(f"   {issue}")

    if not all_passed:
        print("\nGenerate a strong secret with:")
        print('  python -c "import secrets; print(secrets.token_urlsafe(48))"')
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
