import threading

import httpx

from fieldroute.services.routing.distance_oracle import DistanceOracle
from fieldroute.services.routing.models import DistanceCache, DistanceEdge, Location

LOCATIONS = [Location(id=f"S{i}", address=f"{i} Main St") for i in range(3)]


def _matrix(origins, destinations, seconds=300):
    return {
        "status": "OK",
        "rows": [
            {"elements": [{"status": "OK", "duration": {"value": seconds}} for _ in destinations]}
            for _ in origins
        ],
    }


def _oracle(handler, **kwargs):
    kwargs.setdefault("batch_size", 2)
    kwargs.setdefault("max_retries", 0)
    return DistanceOracle(
        "test-key",
        base_url="https://distance.test/matrix",
        backoff_seconds=0,
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


def test_origins_are_batched_against_all_destinations():
    seen = []
    lock = threading.Lock()

    def handler(request):
        origins = request.url.params["origins"].split("|")
        destinations = request.url.params["destinations"].split("|")
        with lock:
            seen.append((len(origins), len(destinations)))
        assert request.url.params["key"] == "test-key"
        return httpx.Response(200, json=_matrix(origins, destinations))

    cache = _oracle(handler).resolve(LOCATIONS)

    assert sorted(seen) == [(1, 3), (2, 3)]
    assert cache.get("S0", "S2") == 5
    assert cache.get("S2", "S1") == 5


def test_failed_batch_leaves_edges_unknown():
    def handler(request):
        origins = request.url.params["origins"].split("|")
        destinations = request.url.params["destinations"].split("|")
        if "2 Main St" in origins:
            return httpx.Response(200, json={"status": "OVER_QUERY_LIMIT", "error_message": "slow down"})
        return httpx.Response(200, json=_matrix(origins, destinations))

    cache = _oracle(handler).resolve(LOCATIONS)

    assert cache.get("S0", "S1") == 5
    assert cache.get("S2", "S0") is None
    assert cache.missing_edges(["S0", "S2", "S1"]) == 1


def test_unresolvable_elements_are_absent_not_zero():
    def handler(request):
        return httpx.Response(
            200,
            json={
                "status": "OK",
                "rows": [
                    {"elements": [{"status": "OK", "duration": {"value": 0}}, {"status": "ZERO_RESULTS"}]},
                    {"elements": [{"status": "NOT_FOUND"}, {"status": "OK", "duration": {"value": 0}}]},
                ],
            },
        )

    cache = _oracle(handler).resolve(LOCATIONS[:2])

    assert not cache.has("S0", "S1")
    assert not cache.has("S1", "S0")


def test_http_errors_do_not_abort_the_run():
    def handler(request):
        return httpx.Response(500, text="boom")

    cache = _oracle(handler).resolve(LOCATIONS)

    assert len(cache) == 0


def test_protocol_errors_fail_only_their_batch():
    def handler(request):
        origins = request.url.params["origins"].split("|")
        destinations = request.url.params["destinations"].split("|")
        if "0 Main St" in origins:
            raise httpx.RemoteProtocolError("peer closed connection", request=request)
        return httpx.Response(200, json=_matrix(origins, destinations))

    cache = _oracle(handler).resolve(LOCATIONS)

    assert cache.get("S2", "S0") == 5
    assert not cache.has("S0", "S1")
    assert not cache.has("S1", "S2")


def test_non_object_body_leaves_edges_unknown():
    def handler(request):
        return httpx.Response(200, json=["not", "a", "matrix"])

    cache = _oracle(handler).resolve(LOCATIONS)

    assert len(cache) == 0


def test_client_errors_are_not_retried():
    calls = []

    def handler(request):
        calls.append(request.url.params["origins"])
        return httpx.Response(403, text="invalid key")

    cache = _oracle(handler, max_retries=2).resolve(LOCATIONS[:2])

    assert calls == ["0 Main St|1 Main St"]
    assert len(cache) == 0


def test_server_errors_and_rate_limits_are_retried():
    responses = [httpx.Response(503), httpx.Response(429)]

    def handler(request):
        if responses:
            return responses.pop(0)
        origins = request.url.params["origins"].split("|")
        destinations = request.url.params["destinations"].split("|")
        return httpx.Response(200, json=_matrix(origins, destinations))

    cache = _oracle(handler, max_retries=2).resolve(LOCATIONS[:2])

    assert responses == []
    assert cache.get("S0", "S1") == 5



def test_cached_pairs_are_not_requested_again():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json=_matrix([1, 2], [1, 2]))

    cache = DistanceCache()
    cache.extend(DistanceEdge(a.id, b.id, 3) for a in LOCATIONS[:2] for b in LOCATIONS[:2] if a != b)

    _oracle(handler).resolve(LOCATIONS[:2], cache=cache)

    assert calls == []


def test_missing_api_key_skips_provider():
    def handler(request):
        raise AssertionError("provider must not be called")

    oracle = DistanceOracle(None, transport=httpx.MockTransport(handler))

    assert len(oracle.resolve(LOCATIONS)) == 0
    assert oracle.check_health() is False
