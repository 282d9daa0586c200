"""
User-facing LINE message texts and formatting helpers.
"""

from typing import Iterable

from ..gmail.models import GmailMessage


MSG_GMAIL_UNAVAILABLE = "Gmail機能は現在利用できません。設定を確認してください。"
MSG_GMAIL_UNAVAILABLE_AUTH = "Gmail機能は現在利用できません。管理者にお問い合わせください。"
MSG_AUTH_REQUIRED = "Gmail連携が必要です。「Gmail連携」を送信して認証してください。"
MSG_NO_UNREAD_EMAILS = "📭 未読メールはありません"
MSG_NO_EMAILS = "📭 メールはありません"
MSG_AUTH_COMPLETE = (
    "✅ Gmail連携が完了しました！\n\n"
    "新着メールが届くと自動で通知されます。\n\n"
    "手動確認: 「未読mail」または「mail一覧」を送信"
)
MSG_AUTH_START = (
    "Gmail連携を開始します。\n\n"
    "次のメッセージのURLからGoogleアカウントで認証してください。\n\n"
    "認証が完了すると自動的に連携されます。"
)
MSG_AUTH_FAILED = "❌ Gmail連携に失敗しました。もう一度「Gmail連携」を送信してください。"
MSG_HELP = (
    "使い方:\n\n"
    "「Gmail連携」: Gmailアカウントを連携\n"
    "「未読mail」: 未読メールを表示\n"
    "「mail一覧」: 最新メールを表示"
)

TITLE_UNREAD_EMAILS = "📬 未読メール"
TITLE_LATEST_EMAILS = "📨 最新メール"
TITLE_NEW_EMAIL = "📧 新着メール"


def format_email_list(title: str, messages: Iterable[GmailMessage]) -> str:
    """Numbered list: one block per message with sender, subject and snippet."""
    messages = list(messages)
    text = f"{title} ({len(messages)}件)\n\n"
    for i, msg in enumerate(messages, start=1):
        text += f"{i}. {msg.sender}\n件名: {msg.subject}\n{msg.snippet}\n\n"
    return text


def format_new_email(msg: GmailMessage) -> str:
    """Single new-mail notification."""
    return f"{TITLE_NEW_EMAIL}\n\n差出人: {msg.sender}\n件名: {msg.subject}\n\n{msg.snippet}"
