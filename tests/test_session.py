"""Tests for session resolution and the admin gate."""
from unittest import mock

from library_admin.client import LibraryStoreClient, StoreHTTPError
from library_admin.session import Session, load_session
from tests.conftest import ADMIN, READER


def test_role_gate():
    """Test that only the admin role passes the gate."""
    assert ADMIN.is_admin()
    assert not READER.is_admin()
    assert not Session().is_admin()
    assert READER.is_admin("User")


def test_load_session_resolves_user():
    """Test that the session user is fetched by id."""
    client = LibraryStoreClient(base_url="http://api")
    with mock.patch.object(client, "get", return_value={"id": "1", "email": "a@b.c", "role": "Admin"}) as get:
        session = load_session(client, "1")

    get.assert_called_once_with("users", "1")
    assert session.role == "Admin"


def test_load_session_without_user_id_is_anonymous():
    """Test that no user id means an anonymous session and no request."""
    client = LibraryStoreClient(base_url="http://api")
    with mock.patch.object(client, "get") as get:
        session = load_session(client, None)

    get.assert_not_called()
    assert session.user is None


def test_load_session_lookup_failure_is_anonymous():
    """Test that a failed lookup leaves the session locked out."""
    client = LibraryStoreClient(base_url="http://api")
    with mock.patch.object(client, "get", side_effect=StoreHTTPError("GET", "http://api/users/9", 404)):
        session = load_session(client, "9")

    assert not session.is_admin()
