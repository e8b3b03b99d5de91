import os
import tempfile
from datetime import date

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="alumni-uploads-")
os.environ["SERVICE_ROLE_KEY"] = "test-service-key"
os.environ["SMTP_HOST"] = ""

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from database import Base, SessionLocal, engine
from dependencies import ADMIN_ROLE, Principal, get_blob_store, get_mailer, grant_role
from errors import UpstreamFailure
from main import app
from schemas import UserSignup
from services import identity
from storage import LocalBlobStore


class RecordingMailer:
    """Keeps sent messages in memory; addresses in ``failing`` raise instead."""

    def __init__(self):
        self.sent = []
        self.failing = set()

    def send(self, to_email, subject, html, text, to_name=None):
        if to_email in self.failing:
            raise UpstreamFailure(f"SMTP refused {to_email}")
        self.sent.append({"to": to_email, "subject": subject, "name": to_name})


class CountingBlobStore(LocalBlobStore):
    """Local store that records calls and can be told to fail."""

    def __init__(self, root, base_url="http://test"):
        super().__init__(root, base_url)
        self.puts = []
        self.deletes = []
        self.fail_put = False
        self.fail_delete = False

    def put(self, path, data, content_type=None):
        if self.fail_put:
            raise UpstreamFailure("Failed to store file")
        self.puts.append(path)
        return super().put(path, data, content_type)

    def delete(self, path):
        if self.fail_delete:
            raise UpstreamFailure("Failed to delete file")
        self.deletes.append(path)
        super().delete(path)


@pytest.fixture(autouse=True)
def reset_database():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def blobs(tmp_path):
    return CountingBlobStore(tmp_path / "uploads")


@pytest.fixture()
def mailer():
    return RecordingMailer()


@pytest_asyncio.fixture()
async def client(blobs, mailer):
    app.dependency_overrides[get_blob_store] = lambda: blobs
    app.dependency_overrides[get_mailer] = lambda: mailer
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


def make_member(db, email="member@example.com", full_name="Asha Rao", batch_year="2010",
                date_of_birth=date(1995, 3, 14), password="secret123") -> Principal:
    _, profile = identity.sign_up(db, UserSignup(
        email=email,
        password=password,
        full_name=full_name,
        batch_year=batch_year,
        date_of_birth=date_of_birth
    ))
    return Principal(user_id=profile.id, email=email)


def make_admin(db, email="admin@example.com", **kwargs) -> Principal:
    principal = make_member(db, email=email, full_name=kwargs.pop("full_name", "Admin User"), **kwargs)
    grant_role(db, principal.user_id, ADMIN_ROLE)
    return principal


def grant_admin_by_id(user_id):
    session = SessionLocal()
    try:
        grant_role(session, user_id, ADMIN_ROLE)
    finally:
        session.close()


async def signup(client, email, full_name="Asha Rao", batch_year="2010",
                 date_of_birth="1995-03-14", password="secret123"):
    response = await client.post("/auth/signup", json={
        "email": email,
        "password": password,
        "full_name": full_name,
        "batch_year": batch_year,
        "date_of_birth": date_of_birth,
    })
    assert response.status_code == 201, response.text
    body = response.json()
    return body["user"]["id"], {"Authorization": f"Bearer {body['access_token']}"}


PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64
