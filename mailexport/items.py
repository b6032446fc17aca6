import email
import re
from email import policy
from email.message import EmailMessage
from email.utils import format_datetime, getaddresses, parseaddr, parsedate_to_datetime
from typing import Any, Callable, Dict, Iterable

from .enums import OlBodyFormat, OlImportance, OlObjectClass, OlSensitivity
from .errors import MissingFieldError
from .paths import write_file

# Fields computed from the full message, only available when the raw bytes can be fetched
BODY_FIELDS = ("Body", "HTMLBody", "RTFBody", "BodyFormat")


class MailItem:
    """
    A mail-like record with a dynamic set of named fields.

    Header fields are held in ``fields``. Body fields are parsed lazily from
    the raw RFC 822 bytes the first time one of them is requested, so walking
    a folder and expanding file names never downloads a message body.
    """

    def __init__(self, uid: str, fields: Dict[str, Any], fetch_raw_func: Callable[[], bytes] = None):
        self.uid = uid
        self.fields = dict(fields)
        self._fetch_raw = fetch_raw_func
        self._body_fields = None

    def has_field(self, name: str) -> bool:
        """Return True if the item exposes a field called ``name``"""
        if name in self.fields:
            return True
        return name in BODY_FIELDS and self._fetch_raw is not None

    def field_names(self) -> Iterable[str]:
        names = list(self.fields)
        if self._fetch_raw is not None:
            names.extend(n for n in BODY_FIELDS if n not in self.fields)
        return names

    def get(self, name: str) -> Any:
        """Return the value of a field, raising MissingFieldError if absent"""
        if name in self.fields:
            return self.fields[name]
        if name in BODY_FIELDS and self._fetch_raw is not None:
            if self._body_fields is None:
                self._body_fields = parse_body_fields(self._fetch_raw())
            return self._body_fields[name]
        raise MissingFieldError([name])

    def __getitem__(self, name: str) -> Any:
        return self.get(name)

    def __contains__(self, name: str) -> bool:
        return self.has_field(name)

    def raw_bytes(self) -> bytes:
        """Return the complete message as RFC 822 bytes"""
        if self._fetch_raw is not None:
            return self._fetch_raw()
        return self._reconstruct_raw_email()

    def save_as(self, path: str, fmt: str = None):
        """
        Save the complete item, attachments included, to ``path``.

        Every source this package reads from stores RFC 822 messages, so the
        whole-item serialization is the message itself whatever ``fmt`` says.
        """
        write_file(path, self.raw_bytes())

    def _reconstruct_raw_email(self) -> bytes:
        """Rebuild a message from the field values of an item built in memory"""
        msg = EmailMessage()
        sender = self.fields.get('SenderEmailAddress', '')
        name = self.fields.get('SenderName', '')
        if sender or name:
            msg['From'] = f"{name} <{sender}>" if name and sender else (sender or name)
        for header, field in (('To', 'To'), ('Cc', 'CC'), ('Subject', 'Subject'),
                              ('Message-ID', 'InternetMessageID')):
            if self.fields.get(field):
                msg[header] = str(self.fields[field])
        received = self.fields.get('ReceivedTime')
        if received is not None and hasattr(received, 'strftime'):
            msg['Date'] = format_datetime(received)

        body = self.fields.get('Body', '')
        html = self.fields.get('HTMLBody')
        msg.set_content(str(body or ''))
        if html:
            msg.add_alternative(str(html), subtype='html')
        return msg.as_bytes(policy=policy.SMTP)

    def __repr__(self):
        return f"<MailItem uid={self.uid} subject={self.fields.get('Subject', '')!r}>"


def item_from_bytes(uid: str, raw: bytes, extra_fields: Dict[str, Any] = None,
                    fetch_raw_func: Callable[[], bytes] = None) -> MailItem:
    """
    Build a MailItem from raw message bytes.

    Only the headers are parsed here. ``fetch_raw_func`` lets a source hand in
    headers now and the full message later; by default the given bytes are
    reused for the body.
    """
    fields = parse_envelope(raw)
    if extra_fields:
        fields.update(extra_fields)
    if fetch_raw_func is None:
        def make_fetcher(raw_copy=raw):
            return lambda: raw_copy
        fetch_raw_func = make_fetcher()
    return MailItem(uid, fields, fetch_raw_func)


def parse_envelope(raw: bytes) -> Dict[str, Any]:
    """Parse the header fields of a message - fast operation"""
    msg = email.message_from_bytes(raw, policy=policy.default)

    sender_name, sender_email = parseaddr(_header(msg, 'From'))
    fields = {
        "Subject": _header(msg, 'Subject'),
        "SenderName": sender_name or sender_email,
        "SenderEmailAddress": sender_email,
        "To": _join_addresses(msg.get_all('To', [])),
        "CC": _join_addresses(msg.get_all('Cc', [])),
        "BCC": _join_addresses(msg.get_all('Bcc', [])),
        "ReplyTo": _header(msg, 'Reply-To'),
        "InternetMessageID": _header(msg, 'Message-ID'),
        "Class": _object_class(msg),
        "MessageClass": "IPM.Note",
        "Importance": _importance(msg),
        "Sensitivity": _sensitivity(msg),
        "Size": len(raw),
    }

    date = _parse_date(_header(msg, 'Date'))
    if date is not None:
        fields["ReceivedTime"] = date
        fields["SentOn"] = date

    if fields["Class"] == OlObjectClass.olMeetingRequest:
        fields["MessageClass"] = "IPM.Schedule.Meeting.Request"
    elif fields["Class"] == OlObjectClass.olReport:
        fields["MessageClass"] = "REPORT.IPM.Note.NDR"
    return fields


def parse_body_fields(raw: bytes) -> Dict[str, Any]:
    """Parse the body of a message - slower operation"""
    msg = email.message_from_bytes(raw, policy=policy.default)
    body_parts = []
    html = None
    rtf = None

    for part in msg.walk():
        if part.is_multipart():
            continue
        if part.get_content_disposition() == 'attachment':
            continue
        content_type = part.get_content_type()
        if content_type == "text/plain":
            content = _safe_get_content(part)
            if content and content.strip():
                body_parts.append(content)
        elif content_type == "text/html" and html is None:
            html = _safe_get_content(part)
        elif content_type in ("text/rtf", "application/rtf") and rtf is None:
            rtf = part.get_payload(decode=True)

    body = "\n\n".join(body_parts)
    if not body and html:
        body = html_to_text(html)

    if html:
        body_format = OlBodyFormat.olFormatHTML
    elif rtf:
        body_format = OlBodyFormat.olFormatRichText
    else:
        body_format = OlBodyFormat.olFormatPlain

    return {
        "Body": body,
        "HTMLBody": html if html is not None else text_to_html(body),
        "RTFBody": rtf if rtf is not None else text_to_rtf(body),
        "BodyFormat": body_format,
    }


def html_to_text(html: str) -> str:
    """Strip markup from an HTML body, keeping paragraph breaks"""
    body = re.sub(r'<script[^>]*>.*?</script>', '', html, flags=re.DOTALL | re.IGNORECASE)
    body = re.sub(r'<style[^>]*>.*?</style>', '', body, flags=re.DOTALL | re.IGNORECASE)
    body = re.sub(r'<br\s*/?>', '\n', body, flags=re.IGNORECASE)
    body = re.sub(r'</p>', '\n\n', body, flags=re.IGNORECASE)
    body = re.sub(r'</div>', '\n', body, flags=re.IGNORECASE)
    body = re.sub(r'</h[1-6]>', '\n\n', body, flags=re.IGNORECASE)
    body = re.sub(r'<[^>]+>', '', body)
    body = re.sub(r'\n\s*\n\s*\n', '\n\n', body)
    body = re.sub(r'[ \t]+', ' ', body)
    body = re.sub(r'\n +', '\n', body)
    return body.strip()


def text_to_html(text: str) -> str:
    """Wrap a plain-text body in a minimal HTML document"""
    import html
    return f"<html><body><pre>{html.escape(text)}</pre></body></html>"


def text_to_rtf(text: str) -> bytes:
    """Render a plain-text body as an RTF document"""
    out = []
    for ch in text:
        if ch in '\\{}':
            out.append('\\' + ch)
        elif ch == '\n':
            out.append('\\par\n')
        elif ord(ch) > 127:
            # RTF \u takes a signed 16-bit value followed by a fallback character
            code = ord(ch)
            if code > 0xFFFF:
                out.append('?')
                continue
            if code > 32767:
                code -= 65536
            out.append(f'\\u{code}?')
        else:
            out.append(ch)
    return ("{\\rtf1\\ansi\\deff0 " + ''.join(out) + "}").encode('ascii')


def _header(msg, name: str) -> str:
    value = msg.get(name)
    return str(value).strip() if value is not None else ""


def _join_addresses(values) -> str:
    addresses = getaddresses([str(v) for v in values])
    return "; ".join(name or addr for name, addr in addresses if name or addr)


def _parse_date(date_str: str):
    if not date_str:
        return None
    try:
        return parsedate_to_datetime(date_str)
    except (TypeError, ValueError, IndexError):
        return None


def _object_class(msg) -> OlObjectClass:
    content_type = msg.get_content_type()
    if content_type == 'multipart/report':
        return OlObjectClass.olReport
    if content_type == 'text/calendar':
        return OlObjectClass.olMeetingRequest
    if msg.is_multipart():
        for part in msg.walk():
            if part.get_content_type() == 'text/calendar' and part.get_content_disposition() != 'attachment':
                return OlObjectClass.olMeetingRequest
    return OlObjectClass.olMail


def _importance(msg) -> OlImportance:
    value = _header(msg, 'Importance').lower()
    if value == 'high':
        return OlImportance.olImportanceHigh
    if value == 'low':
        return OlImportance.olImportanceLow
    priority = _header(msg, 'X-Priority')[:1]
    if priority in ('1', '2'):
        return OlImportance.olImportanceHigh
    if priority in ('4', '5'):
        return OlImportance.olImportanceLow
    return OlImportance.olImportanceNormal


def _sensitivity(msg) -> OlSensitivity:
    value = _header(msg, 'Sensitivity').lower()
    return {
        'personal': OlSensitivity.olPersonal,
        'private': OlSensitivity.olPrivate,
        'company-confidential': OlSensitivity.olConfidential,
    }.get(value, OlSensitivity.olNormal)


def _safe_get_content(part) -> str:
    """Get the text of a part, falling back to lenient decoding"""
    try:
        return part.get_content()
    except (LookupError, UnicodeDecodeError):
        payload = part.get_payload(decode=True)
        if payload:
            return payload.decode('utf-8', errors='replace')
        return ""
