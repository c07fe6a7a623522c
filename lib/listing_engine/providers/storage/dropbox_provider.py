"""
Dropbox Storage Provider
========================
Dropbox implementation of the image storage boundary.

Features:
- OAuth2 refresh token authentication
- Team account support (admin impersonation)
- Chunked uploads for large files
- Temporary links so remote backends can fetch stored images

Refs are Dropbox paths in path_lower form ("/snapr/listings/l1/p1/hdr.jpg").
"""

import logging
from typing import Any, Dict, Optional

import dropbox
import dropbox.common
import requests
from dropbox.exceptions import ApiError, AuthError
from dropbox.files import WriteMode

from .base import BaseStorageProvider
from ...config.constants import (
    API_REQUEST_TIMEOUT,
    DEFAULT_OUTPUT_ROOT,
    DROPBOX_TOKEN_URL,
    STORAGE_PROVIDER_DROPBOX,
    UPLOAD_CHUNK_SIZE,
)
from ...utils.file_utils import is_url, normalize_storage_path, validate_storage_path

logger = logging.getLogger(__name__)


class DropboxProvider(BaseStorageProvider):
    """
    Dropbox storage provider.

    Supports both personal and team (business) accounts.

    Team Account Setup:
    - Requires member_id for admin impersonation
    - Automatically configures namespace root
    """

    def __init__(self, output_root: str = DEFAULT_OUTPUT_ROOT):
        """Initialize Dropbox provider (credentials set via connect())."""
        self.client: Optional[dropbox.Dropbox] = None
        self.output_root = normalize_storage_path(output_root)
        self._connected = False
        self._user_info: Optional[Dict[str, Any]] = None

    def connect(self, credentials: Dict[str, Any]) -> bool:
        """
        Connect to Dropbox using refresh token.

        Args:
            credentials: {
                'refresh_token': str (required),
                'app_key': str (required),
                'app_secret': str (required),
                'member_id': str (optional, for team accounts)
            }

        Returns:
            True if connection successful
        """
        refresh_token = credentials.get('refresh_token')
        app_key = credentials.get('app_key')
        app_secret = credentials.get('app_secret')
        member_id = credentials.get('member_id')

        if not all([refresh_token, app_key, app_secret]):
            raise ValueError("Missing required Dropbox credentials")

        try:
            access_token = self._get_fresh_token(refresh_token, app_key, app_secret)

            if member_id:
                self.client = self._create_team_client(access_token, member_id)
                logger.info("Connected to Dropbox Team as member: %s", member_id)
            else:
                self.client = dropbox.Dropbox(oauth2_access_token=access_token)
                logger.info("Connected to Dropbox (personal account)")

            account = self.client.users_get_current_account()
            self._user_info = {
                'display_name': account.name.display_name,
                'email': account.email,
                'account_type': 'team' if member_id else 'personal',
            }
            self._connected = True
            return True

        except AuthError as e:
            self._connected = False
            raise ConnectionError(f"Dropbox authentication failed: {e}")
        except (ApiError, requests.exceptions.RequestException, ValueError) as e:
            self._connected = False
            raise ConnectionError(f"Dropbox connection error: {e}")

    def _get_fresh_token(self, refresh_token: str, app_key: str, app_secret: str) -> str:
        """Exchange refresh token for access token."""
        data = {
            'grant_type': 'refresh_token',
            'refresh_token': refresh_token,
            'client_id': app_key,
            'client_secret': app_secret,
        }

        try:
            logger.debug("Refreshing Dropbox token")
            response = requests.post(DROPBOX_TOKEN_URL, data=data, timeout=API_REQUEST_TIMEOUT)
            response.raise_for_status()

            access_token = response.json().get('access_token')
            if not access_token:
                raise ValueError("No access token in response")
            return access_token
        finally:
            data.clear()  # Clear credentials from memory

    def _create_team_client(self, access_token: str, member_id: str) -> dropbox.Dropbox:
        """Create team client with admin impersonation and namespace root."""
        client = dropbox.DropboxTeam(oauth2_access_token=access_token).as_admin(member_id)
        root_ns_id = client.users_get_current_account().root_info.root_namespace_id
        return client.with_path_root(dropbox.common.PathRoot.root(root_ns_id))

    def _require_connection(self) -> None:
        if not self._connected:
            raise ConnectionError("Not connected to Dropbox")

    def read(self, ref: str) -> bytes:
        """Download complete file from Dropbox (or an http(s) ref)."""
        if is_url(ref):
            return self.fetch_url(ref)

        self._require_connection()
        path = normalize_storage_path(ref)

        try:
            _, response = self.client.files_download(path)
            return response.content
        except ApiError as e:
            if e.error.is_path() and e.error.get_path().is_not_found():
                raise FileNotFoundError(f"File not found: {path}")
            raise IOError(f"Download failed: {e}")

    def write(
        self,
        data: bytes,
        key: Optional[str] = None,
        content_type: Optional[str] = None,
    ) -> str:
        """Upload to <output_root>/<key>; returns the Dropbox path."""
        self._require_connection()
        path = normalize_storage_path(f"{self.output_root}/{key or self.new_key()}")
        if not validate_storage_path(path):
            raise IOError(f"Invalid Dropbox path: {path}")

        mode = WriteMode('overwrite')
        try:
            if len(data) <= UPLOAD_CHUNK_SIZE:
                self.client.files_upload(data, path, mode=mode)
            else:
                self._chunked_upload(data, path, mode)
        except ApiError as e:
            raise IOError(f"Upload failed: {e}")

        logger.info("Uploaded: %s (%d bytes)", path, len(data))
        return path

    def _chunked_upload(self, content: bytes, remote_path: str, mode: WriteMode) -> None:
        """Upload large file using chunked session."""
        file_size = len(content)

        session = self.client.files_upload_session_start(content[:UPLOAD_CHUNK_SIZE])
        offset = UPLOAD_CHUNK_SIZE
        cursor = dropbox.files.UploadSessionCursor(session_id=session.session_id, offset=offset)

        while offset < file_size:
            chunk_end = min(offset + UPLOAD_CHUNK_SIZE, file_size)
            chunk = content[offset:chunk_end]

            if chunk_end < file_size:
                self.client.files_upload_session_append_v2(chunk, cursor)
                offset = chunk_end
                cursor.offset = offset
            else:
                commit = dropbox.files.CommitInfo(path=remote_path, mode=mode)
                self.client.files_upload_session_finish(chunk, cursor, commit)
                break

    def get_public_url(self, ref: str) -> Optional[str]:
        """Temporary (4 hour) direct link remote backends can fetch."""
        if is_url(ref):
            return ref

        self._require_connection()
        try:
            return self.client.files_get_temporary_link(normalize_storage_path(ref)).link
        except ApiError as e:
            logger.warning("No temporary link for %s: %s", ref, e)
            return None

    def exists(self, ref: str) -> bool:
        if is_url(ref):
            return super().exists(ref)
        if not self._connected:
            return False
        try:
            self.client.files_get_metadata(normalize_storage_path(ref))
            return True
        except ApiError:
            return False

    def get_user_info(self) -> Dict[str, Any]:
        """Get authenticated user info."""
        if not self._user_info:
            return {}
        return self._user_info.copy()

    def get_provider_type(self) -> str:
        return STORAGE_PROVIDER_DROPBOX

    def get_provider_name(self) -> str:
        return "Dropbox"

    def is_connected(self) -> bool:
        return self._connected
