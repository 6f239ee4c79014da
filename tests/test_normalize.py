import pytest

from contract_audit.normalize import (
    interpolation_name,
    join_paths,
    normalize,
    path_param_names,
    query_param_names,
    split_query,
    strip_origin,
)


def test_template_and_numeric_segments_share_a_key():
    assert normalize("/api/users/${id}") == "/api/users/:param"
    assert normalize("/api/users/123") == "/api/users/:param"
    assert normalize("/api/users/:id") == "/api/users/:param"


def test_origin_query_and_slashes_are_dropped():
    assert normalize("https://x.io:8080//api/users/123/?q=1") == "/api/users/:param"
    assert normalize("${API_URL}/users") == "/users"
    assert normalize("/api/items#top") == "/api/items"


def test_uuid_segment_is_a_param():
    assert normalize("/files/3f2504e0-4f89-11d3-9a0c-0305e82c3301") == "/files/:param"


def test_empty_and_root():
    assert normalize("") == "/"
    assert normalize(None) == "/"
    assert normalize("/") == "/"
    assert normalize("///") == "/"


def test_literal_segments_are_kept():
    assert normalize("/api/v1/users") == "/api/v1/users"


@pytest.mark.parametrize(
    "url",
    [
        "/api/users/${user.id}/posts",
        "http://localhost:3000/api/x?y=${z}",
        "api/orders/:orderId(\\d+)",
        "/a/${fn({x: 1})}/b",
        "",
        "/search?q=a/b",
    ],
)
def test_normalize_is_idempotent(url):
    once = normalize(url)
    assert normalize(once) == once


def test_query_split_ignores_interpolated_question_marks():
    assert split_query("/a/${x ? 1 : 2}?b=1") == ("/a/${x ? 1 : 2}", "b=1")


def test_strip_origin_keeps_relative_interpolations():
    assert strip_origin("${base}/api") == "/api"
    assert strip_origin("/api/${id}") == "/api/${id}"


def test_path_param_names():
    assert path_param_names("/api/users/:id/posts/${postId}") == ["id", "postId"]
    assert path_param_names("/api/users/${user.id}") == ["id"]
    assert path_param_names("/api/users/42") == []


def test_query_param_names():
    assert query_param_names("/search?q=${term}&page=2") == ["q", "page"]
    assert query_param_names("/search") == []


def test_interpolation_name():
    assert interpolation_name("user.id") == "id"
    assert interpolation_name("42") is None


def test_join_paths():
    assert join_paths("/api/users", "/:id") == "/api/users/:id"
    assert join_paths("", "/health") == "/health"
    assert join_paths("/api", "") == "/api"
    assert normalize(join_paths("/api/users", "/")) == "/api/users"
