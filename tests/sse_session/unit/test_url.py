from sse_session.url import (
    build_stream_url,
    is_tunnel_host,
    redact_token,
)


def test_build_stream_url_encodes_token() -> None:
    url = build_stream_url("https://api.example.com", "a b/c+d=")

    assert url == "https://api.example.com/api/sse-simple/?token=a%20b%2Fc%2Bd%3D"


def test_build_stream_url_keeps_unreserved_token_characters() -> None:
    url = build_stream_url("https://api.example.com/", "ey.J-x_y~z!*'()")

    assert url == "https://api.example.com/api/sse-simple/?token=ey.J-x_y~z!*'()"


def test_build_stream_url_appends_tunnel_bypass_flag() -> None:
    url = build_stream_url("https://abcd-12.ngrok-free.app", "tok")

    assert url == (
        "https://abcd-12.ngrok-free.app/api/sse-simple/?token=tok"
        "&ngrok-skip-browser-warning=true"
    )


def test_build_stream_url_honours_custom_path_and_markers() -> None:
    url = build_stream_url(
        "http://dev.tunnel.local:8080",
        "tok",
        path="/events/",
        tunnel_markers=("tunnel",),
    )

    assert url == (
        "http://dev.tunnel.local:8080/events/?token=tok&ngrok-skip-browser-warning=true"
    )


def test_is_tunnel_host_only_inspects_host() -> None:
    assert is_tunnel_host("https://x.NGROK.io", ("ngrok",)) is True
    assert is_tunnel_host("https://api.example.com/ngrok", ("ngrok",)) is False
    assert is_tunnel_host("not a url", ("ngrok",)) is False
    assert is_tunnel_host("https://x.ngrok.io", ()) is False


def test_redact_token_masks_query_value() -> None:
    url = "https://api.example.com/api/sse-simple/?token=secret&ngrok-skip-browser-warning=true"

    assert redact_token(url) == (
        "https://api.example.com/api/sse-simple/?token=***"
        "&ngrok-skip-browser-warning=true"
    )
    assert redact_token("no credentials here") == "no credentials here"
