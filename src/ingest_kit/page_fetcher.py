from __future__ import annotations

import logging
from typing import Optional

from .html_extract import ProfileSelectors, extract_profile
from .http_engine import HttpEngine
from .models import CompanyProfile


logger = logging.getLogger(__name__)


class PageFetcher:
    """URL -> CompanyProfile. Missing elements (or an empty body) default; transport/status errors raise."""

    def __init__(
        self,
        engine: HttpEngine,
        *,
        selectors: Optional[ProfileSelectors] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self.engine = engine
        self.selectors = selectors or ProfileSelectors()
        self.timeout = timeout

    def fetch(self, url: str) -> CompanyProfile:
        html = self.engine.get_text(url, timeout=self.timeout)
        profile = extract_profile(html, self.selectors)
        logger.debug(
            "scraped %s: name=%r jobs=%d founders=%d",
            url, profile.name, len(profile.jobs), len(profile.founders),
        )
        return profile
