"""Shared fixtures for blast-radius tests.

boto3 clients are replaced by MagicMocks. Paginated operations are fed from
a per-operation list of pages via the ``pages`` fixture, so expanders that
call ``paginate`` see exactly what a real paginator would yield.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from blastradius.aws.clients import AWSClients

# A page source is either a fixed list of pages or a callable receiving the
# paginate() kwargs and returning the pages for that call.
PageSource = list[dict[str, Any]] | Callable[..., list[dict[str, Any]]]


def _client_error(code: str = "AccessDenied", operation: str = "Describe") -> ClientError:
    """Build a botocore ClientError with the given error code."""
    return ClientError({"Error": {"Code": code, "Message": f"{code} from test"}}, operation)


def _set_pages(client: MagicMock, responses: dict[str, PageSource]) -> MagicMock:
    def get_paginator(operation: str) -> MagicMock:
        paginator = MagicMock()

        def paginate(**kwargs: Any) -> list[dict[str, Any]]:
            source = responses.get(operation, [])
            return list(source(**kwargs) if callable(source) else source)

        paginator.paginate.side_effect = paginate
        return paginator

    client.can_paginate.return_value = True
    client.get_paginator.side_effect = get_paginator
    return client


def _make_client() -> MagicMock:
    # Unconfigured paginated operations yield no pages.
    return _set_pages(MagicMock(), {})


@pytest.fixture
def aws_clients() -> AWSClients:
    """An AWSClients bundle of MagicMocks with empty paginators."""
    return AWSClients(
        elbv2=_make_client(),
        ecs=_make_client(),
        lambda_=_make_client(),
        rds=_make_client(),
        route53=_make_client(),
        application_autoscaling=_make_client(),
        region="us-east-1",
    )


@pytest.fixture
def pages() -> Callable[[MagicMock, dict[str, PageSource]], MagicMock]:
    """Configure paginated responses on a mocked client."""
    return _set_pages


@pytest.fixture
def client_error() -> Callable[..., ClientError]:
    """Build a botocore ClientError: ``client_error("AccessDenied", "DescribeRules")``."""
    return _client_error
