import unittest
from collections import deque

import httpx

from catalog.config import LookupConfig
from catalog.lookup import LookupOutcome, LookupStatus, PosterLookupClient


def _config(**overrides) -> LookupConfig:
    values = {"base_url": "https://lookup.example.com/", "api_key": "secret"}
    values.update(overrides)
    return LookupConfig(**values)


class PosterLookupClientTestCase(unittest.TestCase):
    def _fetch(self, handler, imdb_id: str = "tt0111161", **config_overrides) -> LookupOutcome:
        client = PosterLookupClient(_config(**config_overrides), transport=httpx.MockTransport(handler))
        try:
            return client.fetch(imdb_id)
        finally:
            client.close()

    def test_request_carries_identifier_and_credential(self) -> None:
        requests = deque()

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={"Poster": "https://img.example.com/p.jpg"})

        self._fetch(handler)

        self.assertEqual(len(requests), 1)
        request = requests[0]
        self.assertEqual(request.method, "GET")
        self.assertEqual(request.url.host, "lookup.example.com")
        self.assertEqual(request.url.params.get("i"), "tt0111161")
        self.assertEqual(request.url.params.get("apikey"), "secret")

    def test_custom_parameter_names(self) -> None:
        seen = deque()

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(dict(request.url.params))
            return httpx.Response(200, json={"image": "https://img.example.com/x.jpg"})

        outcome = self._fetch(handler, id_param="id", key_param="key", poster_field="image")

        self.assertEqual(seen[0], {"id": "tt0111161", "key": "secret"})
        self.assertEqual(outcome, LookupOutcome.resolved("https://img.example.com/x.jpg"))

    def test_resolved_url_is_returned_verbatim(self) -> None:
        url = "https://m.media-amazon.com/images/M/MV5B_SX300.jpg"

        outcome = self._fetch(lambda request: httpx.Response(200, json={"Poster": url, "Title": "X"}))

        self.assertTrue(outcome.is_resolved)
        self.assertEqual(outcome.status, LookupStatus.RESOLVED)
        self.assertEqual(outcome.url, url)

    def test_not_available_token_is_not_found(self) -> None:
        for token in ("N/A", "n/a", "N/a"):
            with self.subTest(token=token):
                outcome = self._fetch(lambda request, value=token: httpx.Response(200, json={"Poster": value}))
                self.assertEqual(outcome.status, LookupStatus.NOT_FOUND)
                self.assertIsNone(outcome.url)

    def test_padded_values_are_returned_verbatim(self) -> None:
        for value in (" N/A ", "  "):
            with self.subTest(value=value):
                outcome = self._fetch(lambda request, poster=value: httpx.Response(200, json={"Poster": poster}))
                self.assertEqual(outcome, LookupOutcome.resolved(value))

    def test_empty_or_missing_field_is_not_found(self) -> None:
        for payload in ({"Poster": ""}, {"Title": "No poster here"}, {"Poster": None}):
            with self.subTest(payload=payload):
                outcome = self._fetch(lambda request, body=payload: httpx.Response(200, json=body))
                self.assertEqual(outcome.status, LookupStatus.NOT_FOUND)

    def test_non_success_status_is_transport_error(self) -> None:
        for status_code in (500, 404, 401, 302):
            with self.subTest(status_code=status_code):
                outcome = self._fetch(
                    lambda request, code=status_code: httpx.Response(
                        code, json={"Poster": "https://img.example.com/p.jpg"}
                    )
                )
                self.assertEqual(outcome.status, LookupStatus.TRANSPORT_ERROR)
                self.assertIn(str(status_code), outcome.error)

    def test_unparseable_body_is_transport_error(self) -> None:
        outcome = self._fetch(lambda request: httpx.Response(200, text="<html>oops</html>"))
        self.assertEqual(outcome.status, LookupStatus.TRANSPORT_ERROR)

        outcome = self._fetch(lambda request: httpx.Response(200, json=["not", "an", "object"]))
        self.assertEqual(outcome.status, LookupStatus.TRANSPORT_ERROR)

        outcome = self._fetch(lambda request: httpx.Response(200, json={"Poster": 42}))
        self.assertEqual(outcome.status, LookupStatus.TRANSPORT_ERROR)

    def test_network_failure_is_transport_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        outcome = self._fetch(handler)

        self.assertEqual(outcome.status, LookupStatus.TRANSPORT_ERROR)
        self.assertIn("connection refused", outcome.error)

    def test_no_retry_after_failure(self) -> None:
        calls = deque()

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(503)

        self._fetch(handler)

        self.assertEqual(len(calls), 1)

    def test_api_key_is_required(self) -> None:
        with self.assertRaises(ValueError):
            PosterLookupClient(_config(api_key=None))

    def test_injected_client_is_not_closed(self) -> None:
        http_client = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(200, json={})))
        with PosterLookupClient(_config(), client=http_client) as client:
            self.assertEqual(client.fetch("tt1").status, LookupStatus.NOT_FOUND)
        self.assertFalse(http_client.is_closed)
        http_client.close()


if __name__ == "__main__":
    unittest.main()
