import unittest
from unittest.mock import AsyncMock

from caseconnect.server.routers.realtime import UPGRADE_ROUTES
from caseconnect.server.upgrade import UpgradeRoute, UpgradeRouter, request_target


def ws_scope(path, query=b"", denial=True):
    scope = {
        "type": "websocket",
        "path": path,
        "raw_path": path.encode(),
        "query_string": query,
        "headers": [],
        "client": ("127.0.0.1", 50000),
        "extensions": {"websocket.http.response": {}} if denial else {},
    }
    return scope


class TestRouteMatching(unittest.TestCase):
    def setUp(self):
        self.router = UpgradeRouter(AsyncMock(), UPGRADE_ROUTES)

    def name_for(self, target):
        route = self.router.match(target)
        return route.name if route else None

    def test_exact_routes(self):
        self.assertEqual(self.name_for("/ws-echo"), "ws-echo")
        self.assertEqual(self.name_for("/ws-ping"), "ws-ping")

    def test_exact_routes_reject_suffixes_and_queries(self):
        self.assertIsNone(self.name_for("/ws-echo/"))
        self.assertIsNone(self.name_for("/ws-echo?x=1"))
        self.assertIsNone(self.name_for("/ws-ping/extra"))

    def test_demo_is_a_prefix_route(self):
        self.assertEqual(self.name_for("/web-demo/ws"), "web-demo")
        self.assertEqual(self.name_for("/web-demo/ws?session=abc"), "web-demo")
        self.assertEqual(self.name_for("/web-demo/ws/audio"), "web-demo")
        self.assertIsNone(self.name_for("/web-demo"))

    def test_unknown_targets(self):
        for target in ("/", "/ws", "/health", "/WS-ECHO"):
            self.assertIsNone(self.name_for(target), target)

    def test_request_target_includes_query(self):
        self.assertEqual(request_target(ws_scope("/web-demo/ws", b"a=1&b=2")), "/web-demo/ws?a=1&b=2")
        self.assertEqual(request_target(ws_scope("/ws-echo")), "/ws-echo")


class TestUpgradeDispatch(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.app = AsyncMock()
        self.acceptor = AsyncMock()
        self.router = UpgradeRouter(self.app, [UpgradeRoute("echo", "/ws-echo", self.acceptor)])
        self.sent = []

        async def send(message):
            self.sent.append(message)

        async def receive():
            return {"type": "websocket.connect"}

        self.send = send
        self.receive = receive

    async def test_http_passes_through(self):
        scope = {"type": "http", "path": "/ws-echo"}
        await self.router(scope, self.receive, self.send)
        self.app.assert_awaited_once_with(scope, self.receive, self.send)
        self.acceptor.assert_not_awaited()

    async def test_match_hands_connection_to_acceptor(self):
        await self.router(ws_scope("/ws-echo"), self.receive, self.send)
        self.acceptor.assert_awaited_once()
        websocket = self.acceptor.await_args.args[0]
        self.assertEqual(websocket.url.path, "/ws-echo")
        self.app.assert_not_awaited()

    async def test_unmatched_gets_404_when_denial_supported(self):
        await self.router(ws_scope("/nope"), self.receive, self.send)
        self.acceptor.assert_not_awaited()
        self.assertEqual(self.sent[0]["type"], "websocket.http.response.start")
        self.assertEqual(self.sent[0]["status"], 404)
        self.assertNotIn("websocket.accept", [m["type"] for m in self.sent])

    async def test_unmatched_is_closed_without_denial_extension(self):
        await self.router(ws_scope("/nope", denial=False), self.receive, self.send)
        self.assertEqual([m["type"] for m in self.sent], ["websocket.close"])


if __name__ == '__main__':
    unittest.main()
