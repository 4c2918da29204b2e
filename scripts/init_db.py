import os
import sys
from contextlib import contextmanager
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from werkzeug.security import generate_password_hash

# Ensure repo root is on sys.path when running as a script.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.portal.models import Tenant, User  # noqa: E402
from app.portal.rbac import ADMIN  # noqa: E402


@contextmanager
def _session_scope(database_url: str):
    engine = create_engine(database_url, future=True)
    sm = sessionmaker(bind=engine, class_=Session, autoflush=False, autocommit=False, expire_on_commit=False, future=True)
    s: Session = sm()
    try:
        yield s
        s.commit()
    except Exception:
        s.rollback()
        raise
    finally:
        s.close()
        engine.dispose()


def seed_only(*, database_url: str | None = None) -> None:
    """
    Seed the first tenant and its admin user in an idempotent way.
    Does NOT overwrite an existing admin user's password.
    """
    admin_email = (os.environ.get("ADMIN_EMAIL") or "admin@accountingfirm.com").strip().lower()
    admin_password = os.environ.get("ADMIN_PASSWORD") or "change-me"
    tenant_slug = (os.environ.get("ADMIN_TENANT") or "accountingfirm").strip().lower()

    db_url = (database_url or os.environ.get("DATABASE_URL") or "sqlite:///portal.db").strip()

    with _session_scope(db_url) as s:
        tenant = s.query(Tenant).filter(Tenant.slug == tenant_slug).one_or_none()
        if not tenant:
            tenant = Tenant(slug=tenant_slug, name=tenant_slug.replace("-", " ").title())
            s.add(tenant)
            s.flush()

        user = s.query(User).filter(User.tenant_id == tenant.id, User.email == admin_email).one_or_none()
        if not user:
            user = User(
                tenant_id=tenant.id,
                email=admin_email,
                name="Administrator",
                role=ADMIN,
                password_hash=generate_password_hash(admin_password),
                is_active=True,
            )
            s.add(user)
        elif user.role != ADMIN:
            user.role = ADMIN

    print("Initialized database (seed_only).")
    print(f"Tenant: {tenant_slug}")
    print(f"Admin email: {admin_email}")
    print("Admin password: (from ADMIN_PASSWORD)")


def main() -> None:
    seed_only(database_url=None)


if __name__ == "__main__":
    main()
