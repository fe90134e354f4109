import os

import pytest

from drupal_deploy import manifests
from drupal_deploy.manifests import (
    IMAGE_TAG_TOKEN,
    IMAGE_URL_TOKEN,
    INSTANCE_CONNECTION_NAME_TOKEN,
    UnrenderedTokenError,
    find_tokens,
    render_template,
)


REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

TEMPLATE = """\
spec:
  containers:
    - name: drupal
      image: __IMAGE_URL__/drupal:__IMAGE_TAG__
    - name: adminer
      image: __IMAGE_URL__/adminer:__IMAGE_TAG__
    - name: cloud-sql-proxy
      args: ["__INSTANCE_CONNECTION_NAME__"]
"""


def test_single_token_is_replaced_in_place() -> None:
    out = render_template("image: __IMAGE_TAG__ # keep", {IMAGE_TAG_TOKEN: "abc123"})

    assert out == "image: abc123 # keep"
    assert IMAGE_TAG_TOKEN not in out


def test_end_to_end_all_three_tokens(cfg) -> None:
    values = manifests.manifest_values(cfg, "abc123")

    assert values == {
        IMAGE_URL_TOKEN: "us-central1-docker.pkg.dev/proj/repo",
        IMAGE_TAG_TOKEN: "abc123",
        INSTANCE_CONNECTION_NAME_TOKEN: "proj:us-central1:db-instance",
    }

    out = render_template(TEMPLATE, values)

    assert find_tokens(out) == []
    assert "image: us-central1-docker.pkg.dev/proj/repo/drupal:abc123" in out
    assert "image: us-central1-docker.pkg.dev/proj/repo/adminer:abc123" in out
    assert 'args: ["proj:us-central1:db-instance"]' in out


def test_substituted_values_are_not_rescanned() -> None:
    values = {IMAGE_URL_TOKEN: "__IMAGE_TAG__", IMAGE_TAG_TOKEN: "abc123"}

    out = render_template("a=__IMAGE_URL__ b=__IMAGE_TAG__", values)

    assert out == "a=__IMAGE_TAG__ b=abc123"


def test_unmapped_token_fails_with_token_name() -> None:
    with pytest.raises(UnrenderedTokenError) as excinfo:
        render_template("image: __IMAGE_URL__:__BUILD__", {IMAGE_URL_TOKEN: "x"}, source="dep.yaml")

    assert excinfo.value.tokens == ["__BUILD__"]
    assert "__BUILD__" in str(excinfo.value)
    assert "dep.yaml" in str(excinfo.value)


def test_empty_value_is_substituted_lexically() -> None:
    out = render_template("image: __IMAGE_URL__/drupal", {IMAGE_URL_TOKEN: ""})

    assert out == "image: /drupal"


def test_text_without_tokens_is_untouched() -> None:
    text = "metadata:\n  name: __not_a_token__\n  label: a__b\n"

    assert render_template(text, {}) == text


def test_render_manifests_reads_sorted_yaml_and_keeps_templates(tmp_path, cfg) -> None:
    (tmp_path / "b-service.yaml").write_text("kind: Service\n", encoding="utf-8")
    (tmp_path / "a-deployment.yml").write_text("image: __IMAGE_URL__/drupal:__IMAGE_TAG__\n", encoding="utf-8")
    (tmp_path / "README.md").write_text("__IGNORED__\n", encoding="utf-8")

    rendered = manifests.render_manifests(str(tmp_path), manifests.manifest_values(cfg, "abc123"))

    assert [os.path.basename(m.path) for m in rendered] == ["a-deployment.yml", "b-service.yaml"]
    assert rendered[0].text == "image: us-central1-docker.pkg.dev/proj/repo/drupal:abc123\n"
    # 템플릿 원본은 그대로
    assert "__IMAGE_TAG__" in (tmp_path / "a-deployment.yml").read_text(encoding="utf-8")


def test_render_manifests_missing_directory(tmp_path) -> None:
    with pytest.raises(FileNotFoundError):
        manifests.render_manifests(str(tmp_path / "nope"), {})


def test_join_documents_separates_with_yaml_marker(tmp_path) -> None:
    docs = [
        manifests.RenderedManifest(path="a.yaml", text="kind: A\n"),
        manifests.RenderedManifest(path="b.yaml", text="kind: B\n"),
    ]

    assert manifests.join_documents(docs) == "kind: A\n---\nkind: B\n"


def test_shipped_templates_only_use_known_tokens(cfg) -> None:
    cfg.manifests_dir = "k8s"

    results = manifests.check_manifests(cfg, base_dir=REPO_ROOT)

    assert results
    assert all("정상" in r for r in results), results


def test_shipped_deployment_does_not_expose_adminer_via_service() -> None:
    with open(os.path.join(REPO_ROOT, "k8s", "service.yaml"), "r", encoding="utf-8") as f:
        service = f.read()

    assert "8080" not in service
    assert "type: LoadBalancer" in service


def test_check_manifests_reports_unknown_token(tmp_path, cfg) -> None:
    (tmp_path / "k8s").mkdir()
    (tmp_path / "k8s" / "deployment.yaml").write_text("image: __REGISTRY__\n", encoding="utf-8")

    results = manifests.check_manifests(cfg, base_dir=str(tmp_path))

    assert len(results) == 1
    assert "알 수 없는 토큰" in results[0]
    assert "__REGISTRY__" in results[0]


def test_token_preceded_by_underscores_is_replaced() -> None:
    out = render_template("name: drupal___IMAGE_TAG__\n", {IMAGE_TAG_TOKEN: "abc123"})

    assert out == "name: drupal_abc123\n"


def test_adjacent_tokens_are_replaced_separately(cfg) -> None:
    out = render_template("__IMAGE_URL____IMAGE_TAG__", manifests.manifest_values(cfg, "abc123"))

    assert out == "us-central1-docker.pkg.dev/proj/repoabc123"


def test_find_tokens_does_not_swallow_separators() -> None:
    assert find_tokens("a___IMAGE_TAG__ __IMAGE_URL____IMAGE_TAG__") == [IMAGE_TAG_TOKEN, IMAGE_URL_TOKEN]


def test_unmapped_token_next_to_mapped_token_is_reported_alone() -> None:
    with pytest.raises(UnrenderedTokenError) as excinfo:
        render_template("__IMAGE_TAG____REGION__", {IMAGE_TAG_TOKEN: "abc123"})

    assert excinfo.value.tokens == ["__REGION__"]
