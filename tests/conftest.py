import pytest

from stackforge.models import Resource, Stack

SAMPLE_ENV = {"GITHUB_TOKEN": "ghp_test_token"}


@pytest.fixture
def stack():
    return Stack("test-stack")


@pytest.fixture
def net_host(stack):
    """Net exports `id`; Host consumes it as `subnet`."""
    net = Resource(stack, "Net", "aws_subnet", cidr_block="10.0.1.0/24")
    host = Resource(stack, "Host", "aws_instance", subnet=net.output("id"), ami="ami-123")
    return stack, net, host


@pytest.fixture
def sample_env():
    return dict(SAMPLE_ENV)


@pytest.fixture
def sample_stack(sample_env):
    from stackforge.stacks import build_sample_stack
    return build_sample_stack(environ=sample_env)
