import os
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

# Ensure project root is on sys.path so 'foodbridge' is importable during tests
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("SUPABASE_DISABLED", "1")
os.environ["USE_LOCAL_DB"] = "0"
os.environ.setdefault("SITE_URL", "http://localhost:5173")


@pytest.fixture()
def client():
    # lazy import after env configured
    from foodbridge.main import create_app

    app = create_app()
    # entering the client runs the lifespan, which starts a fresh synchronizer
    with TestClient(app) as c:
        yield c


@pytest.fixture()
def profiles():
    from foodbridge.infrastructure.database.repositories.profile_repository import ProfileRepository

    return ProfileRepository(None)


@pytest.fixture()
def provider(profiles):
    from foodbridge.infrastructure.auth.identity_provider import SupabaseIdentityProvider

    return SupabaseIdentityProvider(None, on_identity_created=profiles.provision_for_identity)


@pytest.fixture()
def sync(provider, profiles):
    from foodbridge.application.use_cases.session_synchronizer import SessionSynchronizer

    with SessionSynchronizer(provider, profiles) as s:
        yield s
