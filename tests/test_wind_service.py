import datetime as dt
import threading
import unittest

from routewind.data_sources.base import CallableWindSource
from routewind.data_sources.open_meteo_client import HourlyWindEntry
from routewind.pool import ConcurrencyLimitedPool
from routewind.wind_service import WindFetchService

NOW = dt.datetime(2025, 6, 1, 12, tzinfo=dt.timezone.utc)


def _series(start_offset_hours=0, count=3):
    return [
        HourlyWindEntry(time=NOW + dt.timedelta(hours=start_offset_hours + i), speed_kmh=10.0 + i, direction_deg=90)
        for i in range(count)
    ]


class CountingSource:
    def __init__(self, result=None, error=None, gate=None):
        self.calls = 0
        self.result = result if result is not None else _series()
        self.error = error
        self.gate = gate
        self._lock = threading.Lock()

    def fetch_wind_hours(self, latitude, longitude):
        with self._lock:
            self.calls += 1
        if self.gate is not None:
            self.gate.wait(timeout=5)
        if self.error is not None:
            raise self.error
        return self.result


def _service(source, **kwargs):
    return WindFetchService(source, clock=lambda: NOW, **kwargs)


class TestWindFetchService(unittest.TestCase):
    def test_cache_key_rounds_to_precision(self):
        svc = _service(CountingSource())
        self.assertEqual(svc.cache_key(43.65, -79.4), "43.6500,-79.4000")
        self.assertEqual(svc.cache_key(43.650001, -79.400004), svc.cache_key(43.65, -79.4))

    def test_second_fetch_served_from_cache(self):
        source = CountingSource()
        svc = _service(source)
        first = svc.fetch(43.65, -79.4)
        second = svc.fetch(43.650001, -79.40000)
        self.assertEqual(first, second)
        self.assertEqual(source.calls, 1)
        self.assertEqual(len(svc), 1)

    def test_cached_does_not_fetch(self):
        source = CountingSource()
        svc = _service(source)
        self.assertIsNone(svc.cached(1.0, 2.0))
        svc.fetch(1.0, 2.0)
        self.assertEqual(svc.cached(1.0, 2.0), _series())
        self.assertEqual(svc.cached_many([(1.0, 2.0), (3.0, 4.0)])[1], None)
        self.assertEqual(source.calls, 1)

    def test_concurrent_calls_share_one_request(self):
        gate = threading.Event()
        source = CountingSource(gate=gate)
        svc = _service(source)
        pool = ConcurrencyLimitedPool(8)

        def release_when_waiting():
            # wait for the owner to enter the source before letting it finish
            while source.calls == 0:
                threading.Event().wait(0.01)
            threading.Event().wait(0.05)
            gate.set()

        releaser = threading.Thread(target=release_when_waiting)
        releaser.start()
        outcomes = pool.run([lambda: svc.fetch(43.65, -79.4) for _ in range(8)])
        releaser.join()

        self.assertEqual(source.calls, 1)
        self.assertTrue(all(o.ok for o in outcomes))
        self.assertTrue(all(o.value == _series() for o in outcomes))

    def test_failure_reaches_waiters_and_is_not_cached(self):
        gate = threading.Event()
        source = CountingSource(error=RuntimeError("upstream down"), gate=gate)
        svc = _service(source)

        results = []

        def call():
            try:
                svc.fetch(10.0, 10.0)
                results.append("ok")
            except RuntimeError as exc:
                results.append(str(exc))

        threads = [threading.Thread(target=call) for _ in range(4)]
        for t in threads:
            t.start()
        while source.calls == 0:
            threading.Event().wait(0.01)
        threading.Event().wait(0.05)
        gate.set()
        for t in threads:
            t.join(timeout=5)

        self.assertEqual(results, ["upstream down"] * 4)
        self.assertIsNone(svc.cached(10.0, 10.0))

        # the next call retries upstream
        source.error = None
        self.assertEqual(svc.fetch(10.0, 10.0), _series())
        self.assertGreaterEqual(source.calls, 2)

    def test_past_hours_dropped_and_capped(self):
        source = CountingSource(result=_series(start_offset_hours=-3, count=40))
        svc = _service(source, max_hours=24)
        entries = svc.fetch(0.0, 0.0)
        self.assertEqual(len(entries), 24)
        self.assertEqual(entries[0].time, NOW)
        self.assertTrue(all(e.time >= NOW for e in entries))

    def test_empty_series_is_cached(self):
        source = CountingSource(result=[])
        svc = _service(source)
        self.assertEqual(svc.fetch(0.0, 0.0), [])
        self.assertEqual(svc.cached(0.0, 0.0), [])
        svc.fetch(0.0, 0.0)
        self.assertEqual(source.calls, 1)

    def test_accepts_callable_source(self):
        svc = _service(CallableWindSource(wind_hours=lambda lat, lon: _series(count=1)))
        self.assertEqual(len(svc.fetch(5.0, 5.0)), 1)

    def test_interrupted_owner_releases_waiters(self):
        class Interrupted(BaseException):
            pass

        gate = threading.Event()
        source = CountingSource(error=Interrupted(), gate=gate)
        svc = _service(source)
        seen = []

        def owner():
            try:
                svc.fetch(7.0, 7.0)
            except Interrupted:
                seen.append("owner")

        def waiter():
            try:
                svc.fetch(7.0, 7.0)
            except Interrupted:
                seen.append("waiter")

        first = threading.Thread(target=owner)
        first.start()
        while source.calls == 0:
            threading.Event().wait(0.01)
        second = threading.Thread(target=waiter)
        second.start()
        threading.Event().wait(0.05)
        gate.set()
        first.join(timeout=5)
        second.join(timeout=5)

        self.assertFalse(second.is_alive())
        self.assertEqual(sorted(seen), ["owner", "waiter"])

        # the key is free again and the next call fetches normally
        source.error = None
        self.assertEqual(svc.fetch(7.0, 7.0), _series())


if __name__ == "__main__":
    unittest.main()
