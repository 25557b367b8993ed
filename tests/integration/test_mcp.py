"""
Integration tests for the MCP JSON-RPC endpoint.
"""

import pytest
from mcp import types

from tests.conftest import FakeNotifier
from url_analyzer.notify.email import DeliveryResult

URL = "https://example.com/articles/parsing"


def rpc(client, method, params=None, msg_id=1):
    message = {"jsonrpc": "2.0", "id": msg_id, "method": method}
    if params is not None:
        message["params"] = params
    response = client.post("/mcp", json=message)
    assert response.status_code == 200
    return response.get_json()


def call(client, name, **arguments):
    reply = rpc(client, "tools/call", {"name": name, "arguments": arguments})
    return reply["result"]


def text_of(result):
    return result["content"][0]["text"]


class TestProtocol:
    def test_initialize(self, client):
        reply = rpc(client, "initialize", {"protocolVersion": "2024-11-05"})
        result = reply["result"]
        assert reply["id"] == 1
        assert result["protocolVersion"] == "2024-11-05"
        assert result["serverInfo"]["name"] == "url-analyzer-mcp"
        assert "tools" in result["capabilities"]

    def test_initialize_unknown_version(self, client):
        result = rpc(client, "initialize", {"protocolVersion": "1999-01-01"})["result"]
        assert result["protocolVersion"] == types.LATEST_PROTOCOL_VERSION

    def test_notification_accepted(self, client):
        response = client.post(
            "/mcp", json={"jsonrpc": "2.0", "method": "notifications/initialized"}
        )
        assert response.status_code == 202

    def test_tools_list(self, client):
        tools = rpc(client, "tools/list")["result"]["tools"]
        assert {t["name"] for t in tools} == {
            "analyze_url",
            "get_summaries",
            "search_content",
            "get_url_details",
            "email_analysis",
        }
        assert all("inputSchema" in t for t in tools)

    def test_unknown_method(self, client):
        assert rpc(client, "resources/list")["error"]["code"] == -32601

    def test_unknown_tool(self, client):
        reply = rpc(client, "tools/call", {"name": "nope", "arguments": {}})
        assert reply["error"]["code"] == -32602

    def test_parse_error(self, client):
        response = client.post("/mcp", data="{not json", content_type="application/json")
        assert response.status_code == 400
        assert response.get_json()["error"]["code"] == -32700

    def test_invalid_request(self, client):
        response = client.post("/mcp", json={"id": 1, "method": "ping"})
        assert response.get_json()["error"]["code"] == -32600

    def test_batch(self, client):
        response = client.post(
            "/mcp",
            json=[
                {"jsonrpc": "2.0", "id": 1, "method": "ping"},
                {"jsonrpc": "2.0", "method": "notifications/initialized"},
                {"jsonrpc": "2.0", "id": 2, "method": "tools/list"},
            ],
        )
        replies = response.get_json()
        assert [r["id"] for r in replies] == [1, 2]

    def test_get_not_allowed(self, client):
        assert client.get("/mcp").status_code == 405


class TestTools:
    def test_analyze_url(self, client, db):
        result = call(client, "analyze_url", url=URL, summary_length="short")
        text = text_of(result)

        assert result["isError"] is False
        assert text.startswith(f"Analysis completed for: {URL}")
        assert "Title: Parsing the Web" in text
        assert "Status: completed" in text
        # MCP analyses always store tags
        assert len(db.get_tags(db.get_by_url(URL).id)) == 3

    def test_analyze_url_rejects_bad_url(self, client, fetcher):
        result = call(client, "analyze_url", url="ftp://example.com/file")
        assert result["isError"] is True
        assert text_of(result).startswith("Error analyzing URL:")
        assert fetcher.calls == []

    def test_analyze_url_fetch_failure(self, client, fetcher, not_found_error):
        fetcher.pages[URL] = not_found_error
        result = call(client, "analyze_url", url=URL)
        assert result["isError"] is True
        assert text_of(result) == "Error analyzing URL: HTTP 404: Not Found"

    def test_get_summaries(self, client):
        assert text_of(call(client, "get_summaries")) == "No summaries found"

        call(client, "analyze_url", url=URL)
        text = text_of(call(client, "get_summaries", limit=5))
        assert f"URL: {URL}" in text
        assert "Summary: A guide to parsing web pages." in text

    def test_get_summaries_limit_bounds(self, client):
        result = call(client, "get_summaries", limit=51)
        assert result["isError"] is True
        assert text_of(result).startswith("Error retrieving summaries:")

    def test_search_content(self, client):
        call(client, "analyze_url", url=URL)

        text = text_of(call(client, "search_content", query="extract readable"))
        assert f"URL: {URL}" in text
        assert "Relevant content: " in text

        assert text_of(call(client, "search_content", query="zebra")) == (
            "No results found for query: zebra"
        )

    def test_get_url_details(self, client):
        assert text_of(call(client, "get_url_details", url=URL)) == (
            f"No analysis found for URL: {URL}"
        )

        call(client, "analyze_url", url=URL)
        text = text_of(call(client, "get_url_details", url=URL))
        assert "Tags: python, web, parsing" in text
        assert "Content Type: article" in text

    def test_email_analysis(self, client, notifier):
        result = call(
            client, "email_analysis", url=URL, email="reader@example.com",
            include_full_content=True,
        )
        text = text_of(result)
        assert result["isError"] is False
        assert "Email sent to: reader@example.com" in text
        assert "Email ID: email-123" in text
        assert "Full Content" in notifier.sent[0]["html"]

    def test_email_analysis_not_configured(self, client, context, fetcher):
        context.notifier = None
        result = call(client, "email_analysis", url=URL, email="reader@example.com")
        assert result["isError"] is True
        assert text_of(result) == (
            "Email functionality is not configured. Please set RESEND_API_KEY."
        )
        assert fetcher.calls == []

    def test_email_analysis_delivery_failure(self, client, context):
        context.notifier = FakeNotifier(DeliveryResult(success=False, error="bounced"))
        result = call(client, "email_analysis", url=URL, email="reader@example.com")
        assert result["isError"] is True
        assert text_of(result) == "Failed to send email: bounced"

    @pytest.mark.parametrize("email", ["", "not-an-address"])
    def test_email_analysis_bad_address(self, client, email):
        result = call(client, "email_analysis", url=URL, email=email)
        assert result["isError"] is True
        assert text_of(result).startswith("Error analyzing and emailing URL:")


class TestMessageShapes:
    def test_ping_returns_empty_result(self, client):
        assert rpc(client, "ping", msg_id="abc") == {"jsonrpc": "2.0", "id": "abc", "result": {}}

    def test_tool_call_without_name(self, client):
        reply = rpc(client, "tools/call", {"arguments": {}})
        assert reply["error"]["code"] == types.INVALID_PARAMS

    def test_tool_call_arguments_must_be_object(self, client):
        reply = rpc(client, "tools/call", {"name": "get_summaries", "arguments": [1]})
        assert reply["error"]["code"] == types.INVALID_PARAMS

    def test_tools_list_parses_as_sdk_result(self, client):
        result = rpc(client, "tools/list")["result"]
        parsed = types.ListToolsResult.model_validate(result)
        analyze = next(t for t in parsed.tools if t.name == "analyze_url")
        assert analyze.inputSchema["required"] == ["url"]

    def test_tool_result_parses_as_sdk_result(self, client):
        result = types.CallToolResult.model_validate(call(client, "get_summaries"))
        assert result.isError is False
        assert result.content[0].text == "No summaries found"
