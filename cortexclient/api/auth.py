"""
API Authentication

Bearer-token authentication for the Cortex API, as an httpx.Auth flow.
"""

import httpx


class APIAuth(httpx.Auth):
    """Authenticate with a Cortex API key"""

    def __init__(self, api_key: str):
        self.api_key = api_key

    def token(self) -> str:
        return f"Bearer {self.api_key}"

    def auth_flow(self, request: httpx.Request):
        request.headers["Authorization"] = self.token()
        yield request

    def __repr__(self) -> str:
        # Never leak the key in logs
        return f"APIAuth(api_key={self.api_key[:4]}...)" if self.api_key else "APIAuth()"
