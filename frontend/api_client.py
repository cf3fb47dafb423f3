import requests
from requests.adapters import HTTPAdapter
from urllib3.util import Retry

# Idempotent reads only; writes are never replayed
GET_RETRY = Retry(
    total=2,
    backoff_factor=0.5,
    allowed_methods=["GET"],
    status_forcelist=[502, 503, 504],
    raise_on_status=False,
)


def make_http_session():
    """A requests.Session that keeps the backend's session cookie and retries failed GETs."""
    session = requests.Session()
    adapter = HTTPAdapter(max_retries=GET_RETRY)
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session


def api_call(session, base_url, method, path, **kwargs):
    """
    Calls the backend.

    Returns a (data, error) pair: the parsed JSON body and None on success,
    or None and a message for the user on failure.
    """
    try:
        response = session.request(method, f"{base_url}{path}", timeout=60, **kwargs)
    except requests.exceptions.RequestException as e:
        return None, f"Connection Error: Could not reach API. ({e})"

    if response.ok:
        return response.json(), None
    try:
        detail = response.json().get("detail", "Unknown error from API.")
    except requests.exceptions.JSONDecodeError:
        detail = response.text
    return None, f"API Error ({response.status_code}): {detail}"
