from pathlib import Path

import yaml
from fakes import write_script

from unitwizard.core.models import GitOpsRef, Owner
from unitwizard.k8s.argocd import ArgoCDClient
from unitwizard.k8s.cluster import KubectlCluster, strip_server_side_fields

KUBECTL = r"""#!/usr/bin/env bash
set -Eeuo pipefail
echo "$*" >> "$(dirname "$0")/calls.log"

case "$*" in
  "config current-context")
    echo "kind-shop"
    ;;
  "get deployments,statefulsets,daemonsets -A -o json")
    cat <<'EOF'
{"items":[
  {"kind":"Deployment","metadata":{"namespace":"shop","name":"web"}},
  {"kind":"Deployment","metadata":{"namespace":"kube-system","name":"coredns"}},
  {"kind":"Deployment","metadata":{"namespace":"argocd","name":"argocd-server"}},
  {"kind":"StatefulSet","metadata":{"namespace":"billing-prod","name":"db"}},
  {"kind":"Deployment","metadata":{"namespace":"shop","name":"api"}}
]}
EOF
    ;;
  "get deployments,statefulsets,daemonsets -n shop -o json")
    cat <<'EOF'
{"items":[
  {"kind":"Deployment","metadata":{"namespace":"shop","name":"web","labels":{"app":"web"}},
   "spec":{"replicas":2},"status":{"readyReplicas":1}},
  {"kind":"StatefulSet","metadata":{"namespace":"shop","name":"cache"},"spec":{"replicas":1},"status":{"readyReplicas":1}},
  {"kind":"Deployment","metadata":{"namespace":"shop","name":"api",
   "labels":{"app":"api","argocd.argoproj.io/instance":"shop-app"}},
   "spec":{"replicas":3},"status":{"readyReplicas":3}},
  {"kind":"Deployment","metadata":{"namespace":"shop","name":"worker",
   "labels":{"argocd.argoproj.io/instance":"shop-app"}},"spec":{}},
  {"kind":"Deployment","metadata":{}}
]}
EOF
    ;;
  "get applications.argoproj.io shop-app -n argocd -o jsonpath={.spec.source.path}")
    printf 'apps/shop/overlays/prod'
    ;;
  "get deployment api -n shop -o yaml")
    cat <<'EOF'
apiVersion: apps/v1
kind: Deployment
metadata:
  name: api
  namespace: shop
  uid: 1234
  resourceVersion: "99"
  generation: 4
  creationTimestamp: "2024-01-01T00:00:00Z"
  managedFields:
  - manager: kubectl
  annotations:
    kubectl.kubernetes.io/last-applied-configuration: '{"big":"blob"}'
    team: checkout
spec:
  replicas: 3
status:
  readyReplicas: 3
EOF
    ;;
  "get deployment web -n shop -o json")
    echo '{"metadata":{"name":"web","annotations":{"confighub.com/import-test":"import-test-7"}}}'
    ;;
  "patch applications.argoproj.io shop-app -n argocd --type merge -p "*)
    echo "application.argoproj.io/shop-app patched"
    ;;
  "delete applications.argoproj.io shop-app -n argocd --cascade=orphan")
    echo "application.argoproj.io \"shop-app\" deleted"
    ;;
  *)
    echo "Error from server (NotFound): $*" >&2
    exit 1
    ;;
esac
"""


def _cluster(bin_dir: Path) -> KubectlCluster:
    kubectl = write_script(bin_dir / "kubectl", KUBECTL)
    return KubectlCluster(kubectl=str(kubectl), timeout_s=10)


def test_current_context(bin_dir: Path) -> None:
    assert _cluster(bin_dir).current_context() == "kind-shop"


def test_list_namespaces_skips_system_namespaces(bin_dir: Path) -> None:
    names, err = _cluster(bin_dir).list_namespaces()
    assert err is None
    assert names == ["billing-prod", "shop"]


def test_list_workloads_detects_owner_and_controller_path(bin_dir: Path) -> None:
    cluster = _cluster(bin_dir)
    workloads, err = cluster.list_workloads("shop")
    assert err is None
    assert [(w.kind, w.name) for w in workloads] == [
        ("Deployment", "api"),
        ("Deployment", "web"),
        ("Deployment", "worker"),
        ("StatefulSet", "cache"),
    ]
    api, web, worker, cache = workloads
    assert api.owner == Owner.ARGOCD.value
    assert api.gitops_ref == GitOpsRef(kind="Application", name="shop-app", namespace="argocd")
    assert api.application_path == "apps/shop/overlays/prod"
    assert (api.ready, api.replicas) == (True, 3)
    assert web.owner == Owner.NATIVE.value
    assert (web.ready, web.replicas) == (False, 2)
    assert worker.application_path == "apps/shop/overlays/prod"
    assert worker.replicas == 1
    assert cache.ready is True

    calls = (bin_dir / "calls.log").read_text(encoding="utf-8").splitlines()
    assert sum(1 for c in calls if c.startswith("get applications.argoproj.io")) == 1


def test_list_workloads_error_is_returned(bin_dir: Path) -> None:
    workloads, err = _cluster(bin_dir).list_workloads("missing")
    assert workloads == []
    assert "NotFound" in err


def test_fetch_manifest_strips_server_fields(bin_dir: Path) -> None:
    text, err = _cluster(bin_dir).fetch_manifest("Deployment", "shop", "api")
    assert err is None
    doc = yaml.safe_load(text)
    assert "status" not in doc
    assert doc["metadata"] == {"name": "api", "namespace": "shop", "annotations": {"team": "checkout"}}
    assert text.startswith("apiVersion: apps/v1\nkind: Deployment\n")
    assert "\n  annotations:\n    team: checkout\n" in text


def test_fetch_manifest_failure(bin_dir: Path) -> None:
    text, err = _cluster(bin_dir).fetch_manifest("Deployment", "shop", "ghost")
    assert text == ""
    assert err.startswith("failed to fetch Deployment/ghost: Error from server (NotFound)")


def test_fetch_live_annotations(bin_dir: Path) -> None:
    annotations, err = _cluster(bin_dir).fetch_live_annotations("Deployment", "shop", "web")
    assert err is None
    assert annotations == {"confighub.com/import-test": "import-test-7"}


def test_missing_kubectl_binary(tmp_path: Path) -> None:
    cluster = KubectlCluster(kubectl=str(tmp_path / "nope" / "kubectl"))
    names, err = cluster.list_namespaces()
    assert names == []
    assert err.endswith("kubectl not found")
    assert cluster.current_context() == ""


def test_strip_server_side_fields_drops_empty_annotations() -> None:
    out = strip_server_side_fields(
        {
            "metadata": {
                "name": "x",
                "annotations": {"kubectl.kubernetes.io/last-applied-configuration": "{}"},
            },
            "status": {},
        }
    )
    assert out == {"metadata": {"name": "x"}}


def test_argocd_client(bin_dir: Path) -> None:
    kubectl = write_script(bin_dir / "kubectl", KUBECTL)
    client = ArgoCDClient(kubectl=str(kubectl), timeout_s=10)
    assert client.disable_auto_sync("argocd", "shop-app") is None
    assert client.delete_app("argocd", "shop-app") is None
    err = client.delete_app("argocd", "other")
    assert err.startswith("failed to delete application: Error from server (NotFound)")

    calls = (bin_dir / "calls.log").read_text(encoding="utf-8").splitlines()
    assert calls[0] == (
        'patch applications.argoproj.io shop-app -n argocd --type merge -p {"spec":{"syncPolicy":{"automated":null}}}'
    )
