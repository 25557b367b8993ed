"""
Shared pytest fixtures for URL analyzer tests.

External collaborators (page fetching, the language model, the email
provider) are replaced with in-memory fakes; storage is a real SQLite file
in a temporary directory.
"""

import pytest

from url_analyzer.config import Config
from url_analyzer.errors import FetchError
from url_analyzer.fetching.fetcher import FetchResult
from url_analyzer.notify.email import DeliveryResult
from url_analyzer.pipeline import AnalysisContext, AnalysisPipeline
from url_analyzer.storage.database import Database
from url_analyzer.summarization.base import BaseSummarizer
from url_analyzer.web.app import create_app

ARTICLE_TEXT = (
    "Python makes it easy to fetch web pages and extract readable text. "
    "This article walks through parsing markup and summarizing the result."
)

ARTICLE_HTML = f"""
<!DOCTYPE html>
<html>
<head>
    <title>Parsing the Web</title>
    <style>body {{ color: red; }}</style>
</head>
<body>
    <nav>Home | About</nav>
    <article>
        <h1>Parsing the Web</h1>
        <p>{ARTICLE_TEXT}</p>
        <script>console.log("tracking");</script>
    </article>
</body>
</html>
"""

DEFAULT_REPLY = "SUMMARY: A guide to parsing web pages.\nTAGS: python, web, parsing"


# ============================================================================
# Fakes
# ============================================================================


class FakeFetcher:
    """Serves canned pages; values may be HTML strings or exceptions."""

    def __init__(self, pages=None, default=ARTICLE_HTML):
        self.pages = pages or {}
        self.default = default
        self.calls = []

    async def fetch(self, url):
        self.calls.append(url)
        page = self.pages.get(url, self.default)
        if isinstance(page, Exception):
            raise page
        return FetchResult(url=url, content=page, status_code=200)


class FakeSummarizer(BaseSummarizer):
    """Real prompt/parse logic around a scripted model reply."""

    def __init__(self, reply=DEFAULT_REPLY, error=None):
        self.reply = reply
        self.error = error
        self.calls = []

    @property
    def model_name(self):
        return "fake-model"

    async def complete(self, system, prompt):
        self.calls.append((system, prompt))
        if self.error is not None:
            raise self.error
        return self.reply


class FakeNotifier:
    """Records outgoing emails instead of sending them."""

    def __init__(self, result=None):
        self.result = result or DeliveryResult(success=True, id="email-123")
        self.sent = []

    async def send(self, to, subject, html):
        self.sent.append({"to": to, "subject": subject, "html": html})
        return self.result


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def db(tmp_path):
    return Database(tmp_path / "test.db")


@pytest.fixture
def fetcher():
    return FakeFetcher()


@pytest.fixture
def summarizer():
    return FakeSummarizer()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def context(tmp_path, db, fetcher, summarizer, notifier):
    return AnalysisContext(
        db=db,
        fetcher=fetcher,
        summarizer=summarizer,
        notifier=notifier,
        config=Config(database_path=tmp_path / "test.db"),
    )


@pytest.fixture
def pipeline(context):
    return AnalysisPipeline(context)


@pytest.fixture
def app(context):
    app = create_app(context.config, context_factory=lambda: context)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def not_found_error():
    return FetchError("HTTP 404: Not Found", status_code=404)
