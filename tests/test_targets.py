from fakes import FakeStore

from unitwizard.store.cub import Target
from unitwizard.workflow.targets import pick_kubernetes_target, poll_attempts, set_targets_cmd

K8S = Target(slug="dev-kubernetes-yaml-kind-shop", provider_type="Kubernetes")


class LateTargetStore(FakeStore):
    """Registers the Kubernetes target only on the Nth listing."""

    def __init__(self, ready_on: int, error: str | None = None) -> None:
        super().__init__()
        self.ready_on = ready_on
        self.error = error
        self.listings = 0

    def list_targets(self, space: str):
        self.calls.append(("list_targets", space))
        self.listings += 1
        if self.listings < self.ready_on:
            if self.error:
                return [], self.error
            return [Target(slug="noop", provider_type="Noop")], None
        return [Target(slug="noop", provider_type="Noop"), K8S], None


def _store_with_units(store: FakeStore, *slugs: str) -> FakeStore:
    for slug in slugs:
        store.create_unit("shop", slug, {}, "kind: Deployment\n")
    return store


def test_waits_for_target_then_sets_it_on_every_unit() -> None:
    store = _store_with_units(LateTargetStore(ready_on=3), "api", "web")
    sleeps: list[float] = []

    msg = set_targets_cmd(store, "shop", ["api", "web"], attempts=5, poll_s=0.5, sleep=sleeps.append)()

    assert msg.error is None
    assert msg.target == K8S.slug
    assert msg.results == [("api", None), ("web", None)]
    assert sleeps == [0.5, 0.5]
    assert store.units["api"]["target"] == K8S.slug
    assert store.units["web"]["target"] == K8S.slug


def test_one_failed_unit_does_not_stop_the_rest() -> None:
    store = _store_with_units(LateTargetStore(ready_on=1), "api", "web")
    msg = set_targets_cmd(store, "shop", ["api", "ghost", "web"], attempts=1, poll_s=0, sleep=lambda s: None)()
    assert msg.results == [
        ("api", None),
        ("ghost", "failed to set target: unit ghost not found"),
        ("web", None),
    ]


def test_gives_up_after_bounded_checks() -> None:
    store = LateTargetStore(ready_on=10)
    msg = set_targets_cmd(store, "shop", ["api"], attempts=4, poll_s=1.0, sleep=lambda s: None)()
    assert msg.error == "no Kubernetes target registered after 4 checks"
    assert store.listings == 4
    assert msg.results == []
    assert not any(c[0] == "set_target" for c in store.calls)


def test_listing_errors_are_retried_and_reported() -> None:
    store = LateTargetStore(ready_on=10, error="failed to list targets: unauthorized")
    msg = set_targets_cmd(store, "shop", ["api"], attempts=2, poll_s=1.0, sleep=lambda s: None)()
    assert msg.error == "no Kubernetes target registered after 2 checks: failed to list targets: unauthorized"
    assert store.listings == 2


def test_poll_attempts_and_target_choice() -> None:
    assert poll_attempts(30.0, 1.0) == 30
    assert poll_attempts(0.0, 1.0) == 1
    assert poll_attempts(5.0, 0.0) == 1
    assert pick_kubernetes_target([Target("noop", "Noop")]) is None
    assert pick_kubernetes_target([Target("noop", "Noop"), K8S]) is K8S
