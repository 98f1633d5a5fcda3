from edutrack.webclient.OAuth2TokenProvider import OAuth2TokenProvider
import httpx


class OAuth2HttpClient:
    """httpx client that authenticates every call with a client-credentials bearer token."""

    def __init__(self, token_provider: OAuth2TokenProvider, client: httpx.AsyncClient = None):
        self.token_provider = token_provider
        self.session = client or httpx.AsyncClient()

    async def request(self, method: str, url: str, **kwargs) -> httpx.Response:
        token = await self.token_provider.get_token()

        headers = kwargs.pop("headers", {})
        headers["Authorization"] = f"Bearer {token}"

        resp = await self.session.request(method, url, headers=headers, **kwargs)
        if resp.status_code == 401:
            # our client token was revoked early; the next call fetches a new one
            self.token_provider.invalidate()
        return resp

    async def post(self, url: str, **kwargs) -> httpx.Response:
        return await self.request("POST", url, **kwargs)

    async def aclose(self) -> None:
        await self.token_provider.aclose()
        await self.session.aclose()
