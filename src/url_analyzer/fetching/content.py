"""Extract readable text content from HTML."""

from dataclasses import dataclass

from bs4 import BeautifulSoup

MIN_CONTENT_LENGTH = 50


@dataclass
class ExtractedContent:
    title: str
    content: str
    word_count: int


class ContentExtractor:
    """Extract title and main text content from HTML."""

    REMOVE_TAGS = ("script", "style")

    # Tried in order; the first selector that matches wins
    CONTENT_SELECTORS = (
        "article",
        "main",
        '[class*="content"]',
        '[class*="post"]',
        "body",
    )

    def extract(self, html: str) -> ExtractedContent:
        """Extract title, normalized text and word count. Never raises."""
        soup = BeautifulSoup(html or "", "html.parser")

        title = soup.title.get_text().strip() if soup.title else ""

        for tag in self.REMOVE_TAGS:
            for element in soup.find_all(tag):
                element.decompose()

        region = None
        for selector in self.CONTENT_SELECTORS:
            region = soup.select_one(selector)
            if region is not None:
                break

        raw = (region or soup).get_text(separator=" ")
        # str.split() also breaks on non-breaking spaces left by &nbsp;
        words = raw.split()

        return ExtractedContent(
            title=title,
            content=" ".join(words),
            word_count=len(words),
        )
