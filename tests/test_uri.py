from sipwire.transport import parse_addr
from sipwire.uri import Uri


def test_str_basic():
    uri = Uri(user="bob", host="127.0.0.1", port=5060)
    assert str(uri) == "sip:bob@127.0.0.1:5060"


def test_str_without_port():
    uri = Uri(user="alice", host="127.0.0.2")
    assert str(uri) == "sip:alice@127.0.0.2"


def test_str_encrypted():
    uri = Uri(encrypted=True, user="bob", host="127.0.0.1", port=5060)
    assert uri.is_encrypted()
    assert str(uri).startswith("sips:")
    assert str(uri)[1:] == str(Uri(user="bob", host="127.0.0.1", port=5060))[0:] .replace("sip:", "ip:", 1) or False


def test_str_with_password():
    password = "password"
    uri = Uri(user="alice", password=password, host="example.com")
    assert f"alice:{password}@" in str(uri)


def test_password_ignored_without_user():
    password = "password"
    uri = Uri(password=password, host="example.com")
    assert password not in str(uri)
    assert "@" not in str(uri)


def test_str_params_and_headers():
    uri = Uri(
        user="bob",
        host="example.com",
        uri_params={"transport": "tcp", "lr": ""},
        headers={"subject": "call", "priority": "urgent"},
    )
    text = str(uri)
    base, _, headers = text.partition("?")
    assert base.endswith(";transport=tcp;lr")
    assert headers == "subject=call&priority=urgent"


def test_clone_is_equal_and_independent():
    uri = Uri(user="bob", host="example.com", port=5060, uri_params={"lr": ""})
    copy = uri.clone()
    assert copy == uri
    copy.uri_params["transport"] = "udp"
    copy.headers["x"] = "y"
    assert "transport" not in uri.uri_params
    assert uri.headers == {}
    assert str(copy) != str(uri)


def test_endpoint_and_addr():
    uri = Uri(user="bob", host="127.0.0.1", port=5060, uri_params={"lr": ""})
    assert uri.addr() == "sip:" + uri.endpoint()
    assert str(uri).startswith(uri.addr())
    secure = Uri(encrypted=True, user="bob", host="127.0.0.1", port=5060)
    assert secure.addr() == "sips:" + secure.endpoint()


def test_endpoint_without_port():
    uri = Uri(user="alice", host="example.com")
    assert ":" not in uri.endpoint()
    assert uri.endpoint().split("@") == [uri.user, uri.host]


def test_host_port_round_trip():
    uri = Uri(host="127.0.0.1", port=5060)
    assert parse_addr(uri.host_port()) == (uri.host, uri.port)
    no_port = Uri(host="example.com")
    assert parse_addr(no_port.host_port()) == ("example.com", 0)