from conftest import Clock, FakeCluster, ScriptedCluster

from streamstress.deploy.wait import ReconciliationWaiter, image_matches, missing_images
from streamstress.errors import ClusterError
from streamstress.utils.retry import BackoffPolicy

REF = "image-registry.openshift-image-registry.svc:5000/tekton-upstream/controller@sha256:aaa"


def _waiter(cluster, clock, **kw):
    return ReconciliationWaiter(cluster, sleep=clock.sleep, clock=clock, **kw)


def test_image_matching_is_bidirectional_substring():
    assert image_matches("reg/ns/controller", "reg/ns/controller@sha256:1")
    assert image_matches("reg/ns/controller@sha256:1", "controller@sha256:1")
    assert missing_images(["a/x", "a/y"], ["a/x@sha256:1"]) == ["a/y"]


def test_converges_when_both_gates_pass():
    clock = Clock()
    result = _waiter(ScriptedCluster(clock, ready_at=2, images_at=3, images=[REF]), clock).wait([REF])
    assert result.converged
    assert result.attempts == 3
    assert clock.sleeps == [10, 20]


def test_ready_without_images_is_not_converged():
    clock = Clock()
    cluster = ScriptedCluster(clock, ready_at=1, images_at=None)
    result = _waiter(cluster, clock, policy=BackoffPolicy(initial=10, cap=30, max_attempts=5)).wait([REF])
    assert not result.converged
    assert result.ready
    assert result.attempts == 5
    assert result.missing_images == (REF,)
    assert "oc logs -n openshift-pipelines deploy/openshift-pipelines-operator" in result.message
    assert clock.sleeps == [10, 20, 30, 30]


def test_images_without_ready_is_not_converged():
    clock = Clock()
    cluster = ScriptedCluster(clock, ready_at=None, images_at=1, images=[REF])
    result = _waiter(cluster, clock, policy=BackoffPolicy(initial=1, cap=1, max_attempts=3)).wait([REF])
    assert not result.converged
    assert not result.ready
    assert result.missing_images == ()
    assert "Ready=False" in result.message


def test_default_schedule_sleeps_are_monotonic_and_capped():
    clock = Clock()
    result = _waiter(ScriptedCluster(clock, None, None), clock, timeout=10_000).wait([REF])
    assert result.attempts == 20
    assert len(clock.sleeps) == 19
    assert all(a <= b for a, b in zip(clock.sleeps, clock.sleeps[1:]))
    assert max(clock.sleeps) == 30


def test_overall_timeout_bounds_the_wait():
    clock = Clock()
    result = _waiter(ScriptedCluster(clock, None, None), clock, timeout=45).wait([REF])
    assert not result.converged
    assert sum(clock.sleeps) <= 45
    assert result.attempts == 4


def test_missing_readiness_resource_counts_as_not_ready():
    clock = Clock()
    result = _waiter(FakeCluster(), clock, policy=BackoffPolicy(initial=1, cap=1, max_attempts=2)).wait([REF])
    assert not result.converged and not result.ready


def test_readiness_read_errors_are_retried_on_the_next_poll():
    clock = Clock()

    class Flaky(ScriptedCluster):
        def get_custom(self, kind, name, namespace=None):
            if self.poll == 1:
                raise ClusterError("service unavailable", status=503)
            return super().get_custom(kind, name, namespace)

    cluster = Flaky(clock, ready_at=1, images_at=1, images=[REF])
    result = _waiter(cluster, clock, policy=BackoffPolicy(initial=1, cap=1, max_attempts=3)).wait([REF])
    assert result.converged
    assert result.attempts == 2


def test_persistent_readiness_read_errors_end_in_a_timeout_message():
    clock = Clock()
    cluster = FakeCluster()
    cluster.fail["get_custom"] = ClusterError("forbidden", status=403)
    result = _waiter(cluster, clock, policy=BackoffPolicy(initial=1, cap=1, max_attempts=2)).wait([REF])
    assert not result.converged and not result.ready
    assert result.attempts == 2
    assert "last TektonConfig read failed: forbidden" in result.message


def test_pod_list_errors_count_as_no_images():
    clock = Clock()
    cluster = ScriptedCluster(clock, ready_at=1, images_at=1, images=[REF])
    cluster.fail["list_pods"] = ClusterError("forbidden", status=403)
    result = _waiter(cluster, clock, policy=BackoffPolicy(initial=1, cap=1, max_attempts=2)).wait([REF])
    assert not result.converged
    assert result.missing_images == (REF,)
