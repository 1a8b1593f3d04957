from __future__ import annotations

import asyncio

from starlette.requests import Request

from fstoolkit import main


def _request(path: str) -> Request:
    scope = {
        'type': 'http',
        'http_version': '1.1',
        'method': 'GET',
        'scheme': 'http',
        'path': path,
        'raw_path': path.encode(),
        'query_string': b'',
        'headers': [],
        'client': ('127.0.0.1', 12345),
        'server': ('testserver', 80),
    }
    return Request(scope)


def test_unhandled_exception_handler_response_is_safe():
    request = _request('/api/files/tree')
    response = asyncio.run(main.unhandled_exception_handler(request, RuntimeError('boom at /srv/private/path')))

    assert response.status_code == 500
    assert response.body == b'{"detail":"Internal server error. Please try again."}'
    assert b'/srv/private/path' not in response.body


def test_healthz_reports_sandbox_state():
    assert main.healthz()['ok'] is True
