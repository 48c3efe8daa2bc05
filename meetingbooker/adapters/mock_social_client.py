"""
Mock social-network client for running without network access or an API key.
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..domain.exceptions import FetchFailure
from ..domain.models import SocialUser
from .social_client import SocialApiClient


class MockSocialClient:
    """
    Mock client that serves profiles from mock_profiles.json.

    Mirrors the public methods of SocialApiClient. Casts are recorded in
    ``sent_casts`` instead of being published.
    """

    def __init__(self, profiles: Optional[List[Dict[str, Any]]] = None):
        """
        Initialize the mock client.

        Args:
            profiles: Raw API-shaped user objects; defaults to the bundled file
        """
        if profiles is None:
            profiles = self._load_profiles()

        self.users = [SocialApiClient._parse_user(raw) for raw in profiles]
        self.sent_casts: List[Dict[str, Any]] = []

    @staticmethod
    def _load_profiles() -> List[Dict[str, Any]]:
        """Load mock profiles from JSON file."""
        data_file = Path(__file__).parent / "mock_profiles.json"

        if data_file.exists():
            with open(data_file, "r", encoding="utf-8") as f:
                return json.load(f)

        return []

    def get_user_by_fid(self, fid: int) -> SocialUser:
        for user in self.users:
            if user.fid == fid:
                return user
        raise FetchFailure(f"No user with FID {fid}")

    def search_users(self, query: str, limit: Optional[int] = None) -> List[SocialUser]:
        needle = query.lower()
        matches = [
            user for user in self.users
            if needle in user.username.lower() or needle in user.display_name.lower()
        ]
        return matches[:limit] if limit is not None else matches

    def get_trending_users(self, limit: int = 10) -> List[SocialUser]:
        ranked = sorted(self.users, key=lambda u: u.follower_count or 0, reverse=True)
        return ranked[:limit]

    def send_cast(self, text: str, parent_url: Optional[str] = None) -> Dict[str, Any]:
        cast = {"text": text, "embeds": []}
        if parent_url:
            cast["parent"] = parent_url
        self.sent_casts.append(cast)
        return {"result": {"cast": cast}}
