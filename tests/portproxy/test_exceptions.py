from portproxy.exceptions import (
    ExternalToolFailure,
    InvalidConfiguration,
    NotFound,
    PortProxyError,
    PrivilegeError,
    TemplateError,
)


def test_hierarchy():
    for error_class in (
        PrivilegeError,
        InvalidConfiguration,
        TemplateError,
        NotFound,
        ExternalToolFailure,
    ):
        assert issubclass(error_class, PortProxyError)


def test_not_found_message():
    error = NotFound("systemd unit", "socat-x-udp.service")

    assert str(error) == "systemd unit 'socat-x-udp.service' not found"
    assert error.kind == "systemd unit"
    assert error.name == "socat-x-udp.service"


def test_external_tool_failure_without_returncode():
    error = ExternalToolFailure("nft -f /etc/nftables.d/portproxy.nft")

    assert str(error) == "Command `nft -f /etc/nftables.d/portproxy.nft` could not be executed"
    assert error.stderr == ""
