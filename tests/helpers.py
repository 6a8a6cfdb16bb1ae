"""Shared test doubles."""
import dataclasses
import json

from lesnek.transport import Response


def json_response(data, status_code=200, **kwargs):
    return Response(body=json.dumps(data).encode("utf-8"), status_code=status_code, **kwargs)


class FakeTransport:
    """Scripted stand-in for HttpTransport.

    Responses are queued per (method, uri); the last one in a queue is
    repeated. Every response carries a fresh nonce.
    """

    def __init__(self):
        self.calls = []
        self.routes = {}
        self.nonces_issued = []

    def add(self, method, uri, *responses):
        self.routes.setdefault((method, uri), []).extend(responses)

    def _next_nonce(self):
        nonce = f"nonce-{len(self.nonces_issued) + 1}"
        self.nonces_issued.append(nonce)
        return nonce

    def _respond(self, method, uri, body):
        self.calls.append((method, uri, body))
        queue = self.routes.get((method, uri))
        if not queue:
            raise AssertionError(f"Unexpected request: {method} {uri}")
        response = queue.pop(0) if len(queue) > 1 else queue[0]
        return dataclasses.replace(response, nonce=self._next_nonce())

    def post(self, uri, body):
        return self._respond("POST", uri, body)

    def get(self, uri):
        return self._respond("GET", uri, None)

    def new_nonce(self):
        self.calls.append(("HEAD", "/directory", None))
        return Response(status_code=200, nonce=self._next_nonce())

    def requests(self, method=None):
        return [(m, u, b) for m, u, b in self.calls if method is None or m == method]

