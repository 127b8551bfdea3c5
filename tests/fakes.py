"""Stand-ins for requests.Session used by the provider and API tests."""


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self.payload = payload
        self.status_code = status_code

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        if isinstance(self.payload, Exception):
            raise self.payload
        return self.payload


class FakeSession:
    """Answers from a {(method, url suffix): response} table and logs each call."""

    def __init__(self, routes):
        self.routes = routes
        self.calls = []

    def _answer(self, method, url, kwargs):
        self.calls.append((method, url, kwargs))
        for (m, suffix), response in self.routes.items():
            if m == method and url.endswith(suffix):
                return response(kwargs) if callable(response) else response
        return FakeResponse({"error": "not found"}, 404)

    def get(self, url, **kwargs):
        return self._answer("get", url, kwargs)

    def post(self, url, **kwargs):
        return self._answer("post", url, kwargs)
