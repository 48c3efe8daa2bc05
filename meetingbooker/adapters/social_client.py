"""
Social-network API client for looking up profiles and publishing casts.
"""

import logging
from typing import Any, Dict, List, Optional

import requests

from ..domain.exceptions import FetchFailure
from ..domain.models import SocialUser

logger = logging.getLogger(__name__)


class SocialApiClient:
    """
    Client for the social-network HTTP API.

    The credential lives on the instance; build one client and hand it to
    whatever needs it.
    """

    DEFAULT_BASE_URL = "https://api.warpcast.com/v2"

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 10,
    ):
        """
        Initialize the API client.

        Args:
            api_key: Bearer token; anonymous requests are sent without one
            base_url: API root, without trailing slash
            timeout: Per-request timeout in seconds
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.headers = {"Content-Type": "application/json"}
        if api_key:
            self.headers["Authorization"] = f"Bearer {api_key}"

    def get_user_by_fid(self, fid: int) -> SocialUser:
        """
        Fetch a single profile.

        Raises:
            FetchFailure: If the request fails or the payload is malformed
        """
        data = self._get("/user", params={"fid": fid})

        try:
            return self._parse_user(data["result"]["user"])
        except (KeyError, TypeError, ValueError) as e:
            raise FetchFailure(f"Malformed user response for FID {fid}: {e}") from e

    def search_users(self, query: str, limit: Optional[int] = None) -> List[SocialUser]:
        """Search profiles by username."""
        params: Dict[str, Any] = {"q": query}
        if limit is not None:
            params["limit"] = limit

        data = self._get("/user-search", params=params)

        try:
            return [self._parse_user(user) for user in data["result"]["users"]]
        except (KeyError, TypeError, ValueError) as e:
            raise FetchFailure(f"Malformed search response for '{query}': {e}") from e

    def get_trending_users(self, limit: int = 10) -> List[SocialUser]:
        """
        Get a list of suggested profiles.

        The API has no trending endpoint; an empty search stands in for it.
        """
        return self.search_users("", limit=limit)

    def send_cast(self, text: str, parent_url: Optional[str] = None) -> Dict[str, Any]:
        """Publish a cast, optionally as a reply to ``parent_url``."""
        payload: Dict[str, Any] = {"text": text, "embeds": []}
        if parent_url:
            payload["parent"] = parent_url

        url = f"{self.base_url}/casts"

        try:
            response = requests.post(url, headers=self.headers, json=payload, timeout=self.timeout)
            response.raise_for_status()
            return response.json()
        except requests.exceptions.RequestException as e:
            raise FetchFailure(f"Failed to send cast: {e}") from e
        except ValueError as e:
            raise FetchFailure(f"Invalid JSON in cast response: {e}") from e

    def _get(self, path: str, params: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        logger.debug("GET %s %s", url, params)

        try:
            response = requests.get(url, headers=self.headers, params=params, timeout=self.timeout)
            response.raise_for_status()
            return response.json()
        except requests.exceptions.RequestException as e:
            raise FetchFailure(f"Request to {path} failed: {e}") from e
        except ValueError as e:
            raise FetchFailure(f"Invalid JSON from {path}: {e}") from e

    @staticmethod
    def _parse_user(raw: Dict[str, Any]) -> SocialUser:
        """
        Map an API user object onto the domain model.

        Response format:
        {
            "fid": 3,
            "username": "dwr",
            "displayName": "Dan Romero",
            "pfp": {"url": "https://..."},
            "profile": {"bio": {"text": "..."}},
            "followerCount": 100,
            "followingCount": 10
        }
        """
        bio = (raw.get("profile") or {}).get("bio")
        if isinstance(bio, dict):
            bio = bio.get("text")

        return SocialUser(
            fid=int(raw["fid"]),
            username=raw["username"],
            display_name=raw.get("displayName") or raw["username"],
            pfp_url=(raw.get("pfp") or {}).get("url", ""),
            bio=bio,
            follower_count=raw.get("followerCount"),
            following_count=raw.get("followingCount"),
        )
