"""Directory client: members of the tracked departments."""

import logging
from typing import Iterable

from pydantic import ValidationError

from ..errors import UpstreamUnavailable
from ..models import DirectoryMember
from .base import UpstreamClient, error_description

logger = logging.getLogger(__name__)

USER_METHOD = "user.get"
PAGE_SIZE = 50


class DirectoryClient:
    """Fetch directory members, one page at a time."""

    def __init__(self, upstream: UpstreamClient, page_size: int = PAGE_SIZE):
        self.upstream = upstream
        self.page_size = page_size

    def _page_params(self, unit_ids: list[int], start: int) -> list[tuple]:
        params = [("filter[UF_DEPARTMENT][]", unit_id) for unit_id in unit_ids]
        params += [
            ("select[]", "ID"),
            ("select[]", "NAME"),
            ("select[]", "LAST_NAME"),
            ("select[]", "UF_DEPARTMENT"),
            ("start", start),
        ]
        return params

    async def fetch_members(
        self, allowed_unit_ids: Iterable[int]
    ) -> list[DirectoryMember]:
        """Fetch every member belonging to at least one allowed unit.

        Pages are requested sequentially with an offset cursor until the
        upstream returns an empty page.

        Args:
            allowed_unit_ids: Department ids; a member needs only one

        Returns:
            Members in upstream order (empty if none)

        Raises:
            UpstreamUnavailable: If any page fails
        """
        unit_ids = sorted(set(allowed_unit_ids))
        if not unit_ids:
            return []

        members: list[DirectoryMember] = []
        start = 0

        while True:
            data = await self.upstream.call(
                USER_METHOD, params=self._page_params(unit_ids, start)
            )
            error = error_description(data)
            if error:
                raise UpstreamUnavailable(
                    f"Directory lookup failed: {error}", operation=USER_METHOD
                )

            page = data.get("result") or []
            if not page:
                break

            try:
                members.extend(DirectoryMember.from_upstream(item) for item in page)
            except (KeyError, ValidationError) as e:
                raise UpstreamUnavailable(
                    f"Unexpected directory payload: {e}", operation=USER_METHOD
                ) from e

            start += self.page_size

        logger.debug(f"Fetched {len(members)} directory members for units {unit_ids}")
        return members
