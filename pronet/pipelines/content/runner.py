"""
Content Runner - discovers post/article candidates on one page.
"""

from typing import Union

from bs4 import BeautifulSoup

from pronet.analyzers.classifier import CONTENT_MODE
from pronet.analyzers.content_extractor import ContentExtractor
from pronet.analyzers.ranker import Ranker
from pronet.core.config import Config, get_default_config
from pronet.core.logger import logger
from pronet.models import ScanResult


class ContentRunner:

    def __init__(self, config: Config = None, silent_mode: bool = False):
        self.config = config or get_default_config()
        self.silent_mode = silent_mode
        self.extractor = ContentExtractor(silent_mode=silent_mode)
        self.ranker = Ranker()

    def run(self, markup: Union[str, BeautifulSoup], url: str) -> ScanResult:
        registry = self.extractor.extract(markup, url)
        items = self.ranker.rank_content(registry, self.config.content_cap)

        if not self.silent_mode:
            logger.info(f"Found {len(items)} content candidates on {url}")

        return ScanResult(url=url, mode=CONTENT_MODE, items=items)
