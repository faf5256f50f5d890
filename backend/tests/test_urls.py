"""
Tests for search URL rewriting.
"""

from datetime import datetime
from urllib.parse import parse_qs, parse_qsl, urlsplit

from rentals.utils.urls import get_query_param, inject_window_params, strip_window_params
from conftest import TZ


TEMPLATE_URL = (
    "https://rentals.example.com/us/en/search?age=25&country=US&endDate=06%2F22%2F2025"
    "&endTime=10%3A00&isMapSearch=false&itemsPerPage=200"
    "&location=MIA%20-%20Miami%20International%20Airport&locationType=AIRPORT"
    "&pickupType=&region=FL&startDate=06%2F19%2F2025&startTime=19%3A30&startMonth=06%2F2025"
)


def query(url):
    return parse_qs(urlsplit(url).query, keep_blank_values=True)


class TestStripWindowParams:

    def test_removes_date_time_keys(self):
        params = query(strip_window_params(TEMPLATE_URL))

        for key in ("startDate", "startTime", "endDate", "endTime", "startMonth"):
            assert key not in params

    def test_removes_empty_values(self):
        params = query(strip_window_params(TEMPLATE_URL))

        assert "pickupType" not in params

    def test_keeps_other_params_in_order(self):
        stripped = strip_window_params(TEMPLATE_URL)
        keys = [key for key, _ in parse_qsl(urlsplit(stripped).query)]

        assert keys == ["age", "country", "isMapSearch", "itemsPerPage", "location",
                        "locationType", "region"]
        assert query(stripped)["location"] == ["MIA - Miami International Airport"]

    def test_keeps_scheme_host_and_path(self):
        stripped = strip_window_params(TEMPLATE_URL)

        assert stripped.startswith("https://rentals.example.com/us/en/search?")

    def test_encodes_like_the_site(self):
        stripped = strip_window_params(TEMPLATE_URL)

        assert "MIA%20-%20Miami" in stripped

    def test_malformed_url_returned_unchanged(self, caplog):
        for bad in ("not a url", "http://[::1/search?startDate=x", ""):
            assert strip_window_params(bad) == bad
        assert "Could not strip" in caplog.text


class TestInjectWindowParams:

    start = datetime(2025, 7, 4, 9, 0, tzinfo=TZ)
    end = datetime(2025, 7, 7, 9, 0, tzinfo=TZ)

    def test_sets_zero_padded_values(self):
        params = query(inject_window_params(strip_window_params(TEMPLATE_URL), self.start, self.end))

        assert params["startDate"] == ["07/04/2025"]
        assert params["startTime"] == ["09:00"]
        assert params["endDate"] == ["07/07/2025"]
        assert params["endTime"] == ["09:00"]

    def test_exactly_one_of_each_after_round_trip(self):
        url = inject_window_params(strip_window_params(TEMPLATE_URL), self.start, self.end)
        later_start = datetime(2025, 12, 31, 23, 30, tzinfo=TZ)
        later_end = datetime(2026, 1, 2, 23, 30, tzinfo=TZ)

        again = inject_window_params(strip_window_params(url), later_start, later_end)
        params = query(again)

        assert params["startDate"] == ["12/31/2025"]
        assert params["startTime"] == ["23:30"]
        assert params["endDate"] == ["01/02/2026"]
        assert params["endTime"] == ["23:30"]

    def test_replaces_existing_window(self):
        params = query(inject_window_params(TEMPLATE_URL, self.start, self.end))

        assert params["startDate"] == ["07/04/2025"]
        assert params["endTime"] == ["09:00"]

    def test_strip_removes_injected_window(self):
        url = inject_window_params(strip_window_params(TEMPLATE_URL), self.start, self.end)

        assert strip_window_params(url) == strip_window_params(TEMPLATE_URL)

    def test_malformed_url_returned_unchanged(self, caplog):
        assert inject_window_params("nope", self.start, self.end) == "nope"
        assert "Could not inject" in caplog.text


class TestGetQueryParam:

    def test_present(self):
        assert get_query_param(TEMPLATE_URL, "region") == "FL"

    def test_absent(self):
        assert get_query_param("https://x.test/search?age=25", "region") == ""
