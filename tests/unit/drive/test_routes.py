"""Unit tests for Google Drive routes.

Tests for:
- Connected account endpoint
- Missing connection and configuration
- Google API failures
"""

from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi import status
from fastapi.testclient import TestClient
from googleapiclient.errors import HttpError

from founderhub.cloud.schemas import CloudProvider
from founderhub.drive.schemas import DriveAccount
from founderhub.drive.service import DriveAccountService, to_google_credentials
from tests.fakes import (
    InMemoryCredentialStore,
    StaticAppCredentials,
    make_credential,
    make_oauth_config,
)


@pytest.fixture
def mock_drive_service():
    """Mock Drive account service for tests."""
    service = MagicMock()
    service.get_account = AsyncMock(
        return_value=DriveAccount(
            email="founder@example.com",
            display_name="Founder",
            photo_link=None,
        )
    )
    return service


@pytest.fixture
def test_client_with_mocks(mock_drive_service):
    """Create test client with mocked dependencies."""
    from founderhub.core.dependencies import get_drive_account_service
    from founderhub.main import app

    async def override_drive_service():
        return mock_drive_service

    app.dependency_overrides[get_drive_account_service] = override_drive_service

    client = TestClient(app)
    yield client

    # Clean up overrides
    app.dependency_overrides.clear()


@pytest.mark.unit
class TestAccount:
    """Tests for GET /drive/account."""

    @staticmethod
    def test_returns_connected_account(test_client_with_mocks):
        """Test the connected account identity is returned."""
        response = test_client_with_mocks.get("/drive/account")

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {
            "email": "founder@example.com",
            "display_name": "Founder",
            "photo_link": None,
        }

    @staticmethod
    def test_google_error_is_bad_gateway(test_client_with_mocks, mock_drive_service):
        """Test a Google API failure maps to 502."""
        resp = MagicMock(status=403, reason="Forbidden")
        mock_drive_service.get_account.side_effect = HttpError(resp, b'{"error": {"message": "Forbidden"}}')

        response = test_client_with_mocks.get("/drive/account")

        assert response.status_code == status.HTTP_502_BAD_GATEWAY

    @staticmethod
    def test_not_connected():
        """Test a user without Google credential gets 401."""
        from founderhub.core.dependencies import (
            get_app_credentials_repository,
            get_credential_store,
        )
        from founderhub.main import app

        app.dependency_overrides[get_credential_store] = lambda: InMemoryCredentialStore()
        app.dependency_overrides[get_app_credentials_repository] = lambda: StaticAppCredentials(
            make_oauth_config()
        )
        try:
            response = TestClient(app).get("/drive/account")
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json()["detail"] == "Google account not connected"

    @staticmethod
    def test_unconfigured_client():
        """Test a connected user without app config gets 503."""
        from founderhub.core.dependencies import (
            get_app_credentials_repository,
            get_credential_store,
        )
        from founderhub.main import app

        store = InMemoryCredentialStore({CloudProvider.GOOGLE: make_credential()})
        app.dependency_overrides[get_credential_store] = lambda: store
        app.dependency_overrides[get_app_credentials_repository] = lambda: StaticAppCredentials(None)
        try:
            response = TestClient(app).get("/drive/account")
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE


@pytest.mark.unit
class TestDriveAccountService:
    """Tests for the Drive service wrapper."""

    @staticmethod
    def test_google_credentials_from_stored_credential():
        """Test stored tokens become google-auth credentials."""
        credential = make_credential(expires_at=datetime(2025, 1, 15, 12, 0, tzinfo=UTC))

        creds = to_google_credentials(credential, make_oauth_config())

        assert creds.token == "ya29.access-token"
        assert creds.refresh_token == "1//refresh-token"
        assert creds.client_id == "test-client-id.apps.googleusercontent.com"
        assert creds.expiry == datetime(2025, 1, 15, 12, 0)
        assert creds.scopes == [
            "https://www.googleapis.com/auth/drive.file",
            "https://www.googleapis.com/auth/presentations",
        ]

    @staticmethod
    @pytest.mark.asyncio
    async def test_get_account_reads_about_resource():
        """Test the account comes from the about resource."""
        with patch("founderhub.drive.service.build") as mock_build:
            request = MagicMock()
            request.execute.return_value = {
                "user": {
                    "emailAddress": "founder@example.com",
                    "displayName": "Founder",
                    "photoLink": "https://lh3.example/photo",
                }
            }
            mock_build.return_value.about.return_value.get.return_value = request

            service = DriveAccountService(MagicMock())
            account = await service.get_account()

        assert account.email == "founder@example.com"
        assert account.photo_link == "https://lh3.example/photo"
        mock_build.return_value.about.return_value.get.assert_called_once_with(
            fields="user(displayName,emailAddress,photoLink)"
        )
