from __future__ import annotations

import re
from dataclasses import dataclass

from sqlalchemy.engine import make_url

TEST_DB_NAME_RE = re.compile(r"test", re.IGNORECASE)
IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
ALLOWED_LOCAL_HOSTS = frozenset(
    {
        "localhost",
        "127.0.0.1",
        "::1",
        "postgres",
        "credit_ledger_postgres",
    }
)


@dataclass(frozen=True, slots=True)
class IntegrationDbCheck:
    database_name: str
    host: str
    problems: tuple[str, ...]

    @property
    def is_safe(self) -> bool:
        return not self.problems


def check_test_database_target(database_url: str) -> IntegrationDbCheck:
    parsed = make_url(database_url)
    db_name = (parsed.database or "").strip()
    host = (parsed.host or "").strip().lower()

    problems: list[str] = []
    if parsed.get_backend_name() != "postgresql":
        problems.append("only PostgreSQL test databases are supported")
    if not db_name:
        problems.append("database name is empty")
    elif TEST_DB_NAME_RE.search(db_name) is None:
        problems.append("database name must contain 'test'")
    elif IDENTIFIER_RE.fullmatch(db_name) is None:
        problems.append("database name must be a plain [A-Za-z0-9_] identifier")
    if host not in ALLOWED_LOCAL_HOSTS:
        problems.append(f"host '{host}' is not an allowed local test host")

    return IntegrationDbCheck(database_name=db_name, host=host, problems=tuple(problems))


def require_test_database(database_url: str, *, purpose: str) -> IntegrationDbCheck:
    check = check_test_database_target(database_url)
    if check.is_safe:
        return check

    raise RuntimeError(
        f"Refusing to {purpose} on database '{check.database_name}' at '{check.host}': "
        f"{'; '.join(check.problems)}. Use a dedicated local database such as 'credit_ledger_test'."
    )
