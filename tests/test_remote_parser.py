"""
Tests for the remote parser client.

The endpoint is mocked with httpx.MockTransport; no real API calls.
"""

import httpx
import pytest

from tapmoney.config import ParserSettings
from tapmoney.services.parser import (
    MalformedEnvelope,
    MissingField,
    PartialOrFullDecodeFailure,
    RemoteParser,
    TransportFailure,
    TypeMismatch,
)

from conftest import ENDPOINT, FakeEndpoint, envelope, wire_expense


class TestParseSuccess:
    """Tests for well-formed responses."""

    @pytest.mark.asyncio
    async def test_posts_prompt_as_json(self, parser_settings):
        """Test the request shape: one POST with {"prompt": ...}."""
        endpoint = FakeEndpoint(envelope(data=[wire_expense()]))
        async with endpoint.client() as client:
            parser = RemoteParser(settings=parser_settings, client=client)
            await parser.parse("午餐便當 120")

        assert len(endpoint.requests) == 1
        request = endpoint.requests[0]
        assert request.method == "POST"
        assert str(request.url) == ENDPOINT
        assert request.headers["content-type"] == "application/json"
        assert endpoint.prompts == ["午餐便當 120"]

    @pytest.mark.asyncio
    async def test_records_in_response_order(self, parser_settings):
        endpoint = FakeEndpoint(envelope(data=[
            wire_expense(title="早餐", amount=60),
            wire_expense(title="午餐", amount=120),
            wire_expense(title="晚餐", amount=200),
        ]))
        async with endpoint.client() as client:
            parser = RemoteParser(settings=parser_settings, client=client)
            records = await parser.parse("三餐")

        assert [r.title for r in records] == ["早餐", "午餐", "晚餐"]
        assert len({r.id for r in records}) == 3

    @pytest.mark.asyncio
    async def test_raw_only_returns_empty_list(self, parser_settings):
        """Test that data=null with raw text is an empty result, not an error."""
        endpoint = FakeEndpoint(envelope(data=None, raw="I could not understand that"))
        async with endpoint.client() as client:
            parser = RemoteParser(settings=parser_settings, client=client)
            records = await parser.parse("hello")
            await parser.wait_for_diagnostics()

        assert records == []
        # No error, so no diagnostic re-send
        assert len(endpoint.requests) == 1

    @pytest.mark.asyncio
    async def test_raw_text_is_returned_alongside_records(self, parser_settings):
        endpoint = FakeEndpoint(envelope(data=[], raw="I could not parse that"))
        async with endpoint.client() as client:
            parser = RemoteParser(settings=parser_settings, client=client)
            records, raw = await parser.parse_with_raw("hello")

        assert records == []
        assert raw == "I could not parse that"

    @pytest.mark.asyncio
    async def test_empty_data_returns_empty_list(self, parser_settings):
        endpoint = FakeEndpoint(envelope(data=[], raw="..."))
        async with endpoint.client() as client:
            parser = RemoteParser(settings=parser_settings, client=client)
            assert await parser.parse("hello") == []

    @pytest.mark.asyncio
    async def test_unparseable_timestamp_falls_back_by_default(self, parser_settings):
        endpoint = FakeEndpoint(envelope(data=[wire_expense(timestamp="昨天")]))
        async with endpoint.client() as client:
            parser = RemoteParser(settings=parser_settings, client=client)
            records = await parser.parse("昨天午餐 120")

        assert len(records) == 1
        assert records[0].timestamp.tzinfo is not None


class TestParseFailures:
    """Tests for transport, envelope and decode failures."""

    @pytest.mark.asyncio
    async def test_decode_failure_rejects_whole_response(self, parser_settings):
        """Test that one bad element out of three fails the whole parse."""
        endpoint = FakeEndpoint(envelope(data=[
            wire_expense(title="早餐"),
            wire_expense(title="午餐", amount="120"),
            wire_expense(title="晚餐"),
        ]))
        async with endpoint.client() as client:
            parser = RemoteParser(settings=parser_settings, client=client)
            with pytest.raises(PartialOrFullDecodeFailure) as exc_info:
                await parser.parse("三餐")
            await parser.wait_for_diagnostics()

        failure = exc_info.value
        assert failure.index == 1
        assert failure.total == 3
        assert isinstance(failure.cause, TypeMismatch)
        assert failure.cause.field_name == "amount"

    @pytest.mark.asyncio
    async def test_missing_field_is_reported(self, parser_settings):
        payload = wire_expense()
        del payload["category"]
        endpoint = FakeEndpoint(envelope(data=[payload]))
        async with endpoint.client() as client:
            parser = RemoteParser(settings=parser_settings, client=client)
            with pytest.raises(PartialOrFullDecodeFailure) as exc_info:
                await parser.parse("午餐 120")
            await parser.wait_for_diagnostics()

        assert isinstance(exc_info.value.cause, MissingField)
        assert exc_info.value.cause.field_name == "category"

    @pytest.mark.asyncio
    async def test_http_error_status(self, parser_settings):
        endpoint = FakeEndpoint(httpx.Response(502, text="bad gateway"))
        async with endpoint.client() as client:
            parser = RemoteParser(settings=parser_settings, client=client)
            with pytest.raises(TransportFailure) as exc_info:
                await parser.parse("午餐 120")
            await parser.wait_for_diagnostics()

        assert exc_info.value.status_code == 502
        assert not isinstance(exc_info.value, MalformedEnvelope)

    @pytest.mark.asyncio
    async def test_timeout_is_transport_failure(self, parser_settings):
        endpoint = FakeEndpoint(httpx.ReadTimeout("timed out"))
        async with endpoint.client() as client:
            parser = RemoteParser(settings=parser_settings, client=client)
            with pytest.raises(TransportFailure) as exc_info:
                await parser.parse("午餐 120")
            await parser.wait_for_diagnostics()

        assert "timed out" in exc_info.value.detail

    @pytest.mark.asyncio
    async def test_connection_error_is_transport_failure(self, parser_settings):
        endpoint = FakeEndpoint(httpx.ConnectError("connection refused"))
        async with endpoint.client() as client:
            parser = RemoteParser(settings=parser_settings, client=client)
            with pytest.raises(TransportFailure):
                await parser.parse("午餐 120")
            await parser.wait_for_diagnostics()

    @pytest.mark.asyncio
    async def test_non_json_body_is_malformed(self, parser_settings):
        endpoint = FakeEndpoint(httpx.Response(200, text="<html>oops</html>"))
        async with endpoint.client() as client:
            parser = RemoteParser(settings=parser_settings, client=client)
            with pytest.raises(MalformedEnvelope):
                await parser.parse("午餐 120")
            await parser.wait_for_diagnostics()

    @pytest.mark.asyncio
    async def test_non_object_body_is_malformed(self, parser_settings):
        endpoint = FakeEndpoint(httpx.Response(200, json=[wire_expense()]))
        async with endpoint.client() as client:
            parser = RemoteParser(settings=parser_settings, client=client)
            with pytest.raises(MalformedEnvelope):
                await parser.parse("午餐 120")
            await parser.wait_for_diagnostics()

    @pytest.mark.asyncio
    async def test_data_not_a_list_is_malformed(self, parser_settings):
        endpoint = FakeEndpoint(httpx.Response(200, json={"data": "便當", "raw": None}))
        async with endpoint.client() as client:
            parser = RemoteParser(settings=parser_settings, client=client)
            with pytest.raises(MalformedEnvelope):
                await parser.parse("午餐 120")
            await parser.wait_for_diagnostics()

    @pytest.mark.asyncio
    async def test_strict_timestamps_reject_bad_timestamp(self):
        settings = ParserSettings(endpoint_url=ENDPOINT, strict_timestamps=True, diagnostics_enabled=False)
        endpoint = FakeEndpoint(envelope(data=[wire_expense(timestamp="昨天")]))
        async with endpoint.client() as client:
            parser = RemoteParser(settings=settings, client=client)
            with pytest.raises(PartialOrFullDecodeFailure) as exc_info:
                await parser.parse("昨天午餐 120")

        assert exc_info.value.cause.field_name == "timestamp"


class TestDiagnosticCapture:
    """Tests for the fire-and-forget diagnostic re-send."""

    @pytest.mark.asyncio
    async def test_failure_resends_same_body_once(self, parser_settings):
        """Test that a failed parse re-sends the identical body exactly once."""
        endpoint = FakeEndpoint(envelope(data=[wire_expense(amount="120")]))
        async with endpoint.client() as client:
            parser = RemoteParser(settings=parser_settings, client=client)
            with pytest.raises(PartialOrFullDecodeFailure):
                await parser.parse("午餐 120")
            await parser.wait_for_diagnostics()

        assert len(endpoint.requests) == 2
        assert endpoint.requests[0].content == endpoint.requests[1].content

    @pytest.mark.asyncio
    async def test_no_resend_on_success(self, parser_settings):
        endpoint = FakeEndpoint(envelope(data=[wire_expense()]))
        async with endpoint.client() as client:
            parser = RemoteParser(settings=parser_settings, client=client)
            await parser.parse("午餐 120")
            await parser.wait_for_diagnostics()

        assert len(endpoint.requests) == 1

    @pytest.mark.asyncio
    async def test_resend_failure_never_reaches_caller(self, parser_settings):
        """Test that the re-send crashing leaves the original error intact."""
        endpoint = FakeEndpoint(
            httpx.Response(500, text="boom"),
            httpx.ConnectError("gone"),
        )
        async with endpoint.client() as client:
            parser = RemoteParser(settings=parser_settings, client=client)
            with pytest.raises(TransportFailure) as exc_info:
                await parser.parse("午餐 120")
            await parser.wait_for_diagnostics()

        assert exc_info.value.status_code == 500
        assert len(endpoint.requests) == 2

    @pytest.mark.asyncio
    async def test_diagnostics_can_be_disabled(self):
        settings = ParserSettings(endpoint_url=ENDPOINT, diagnostics_enabled=False)
        endpoint = FakeEndpoint(httpx.Response(500, text="boom"))
        async with endpoint.client() as client:
            parser = RemoteParser(settings=settings, client=client)
            with pytest.raises(TransportFailure):
                await parser.parse("午餐 120")
            await parser.wait_for_diagnostics()

        assert len(endpoint.requests) == 1


class TestLifecycle:
    """Tests for client ownership."""

    @pytest.mark.asyncio
    async def test_shared_client_is_not_closed(self, parser_settings):
        endpoint = FakeEndpoint(envelope(data=[wire_expense()]))
        async with endpoint.client() as client:
            parser = RemoteParser(settings=parser_settings, client=client)
            await parser.aclose()
            assert not client.is_closed

    @pytest.mark.asyncio
    async def test_owned_client_is_closed(self, parser_settings):
        parser = RemoteParser(settings=parser_settings)
        await parser.aclose()
        assert parser._client.is_closed
