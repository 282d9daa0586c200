"""
Gmail OAuth Callback Router

Google redirects here after consent with ?code=...&state=<LINE user ID>.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import HTMLResponse

from ...notifications.service import NotificationService
from ..dependencies import get_notification_service


logger = logging.getLogger(__name__)

router = APIRouter()


HTML_SUCCESS = "<html><body><h1>✅ 認証完了</h1><p>LINEに戻ってください。</p></body></html>"
HTML_FAILURE = "<html><body><h1>❌ 認証失敗</h1><p>LINEから「Gmail連携」をもう一度送信してください。</p></body></html>"
HTML_BAD_REQUEST = "<html><body><h1>❌ 不正なリクエスト</h1></body></html>"


@router.get("/oauth/gmail/callback", response_class=HTMLResponse)
def gmail_oauth_callback(
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    service: NotificationService = Depends(get_notification_service),
):
    """
    Complete the Gmail handshake for the LINE user in `state`.

    Missing parameters give 400; otherwise the page reports success or failure
    with status 200.
    """
    if error:
        logger.warning(f"Gmail OAuth denied for user {state}: {error}")

    if not code or not state:
        return HTMLResponse(HTML_BAD_REQUEST, status_code=400)

    try:
        service.complete_auth(state, code)
    except Exception as e:
        logger.error(f"Gmail OAuth callback failed for user {state}: {e}")
        return HTMLResponse(HTML_FAILURE)

    return HTMLResponse(HTML_SUCCESS)
