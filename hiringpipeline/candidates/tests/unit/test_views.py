import threading
import time

from candidates import views
from candidates.views import CandidateViewSet


def test_concurrent_first_requests_build_one_coordinator(monkeypatch):
    built = []

    def slow_build():
        time.sleep(0.05)
        coordinator = object()
        built.append(coordinator)
        return coordinator

    monkeypatch.setattr(CandidateViewSet, "coordinator", None)
    monkeypatch.setattr(views, "build_default_coordinator", slow_build)

    barrier = threading.Barrier(4)
    results = []

    def first_request():
        barrier.wait()
        results.append(CandidateViewSet().get_coordinator())

    threads = [threading.Thread(target=first_request) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=5)

    assert len(built) == 1
    assert len(results) == 4
    assert all(result is built[0] for result in results)
